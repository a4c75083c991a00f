"""
Tests for credential encryption and dashboard token validation

Author: TM3
Date: 2026-02-12
"""
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from shipcrowd.core.auth import get_company_id, get_current_user
from shipcrowd.core.config import settings
from shipcrowd.core.encryption import decrypt_value, encrypt_value
from shipcrowd.core.exceptions import AppError

AUTH_SECRET = "test-auth-secret"


def bearer(payload: dict) -> HTTPAuthorizationCredentials:
    token = jwt.encode(payload, AUTH_SECRET, algorithm="HS256")
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestEncryption:

    def test_round_trip(self):
        key = Fernet.generate_key().decode()

        token = encrypt_value("ck_live_123", key=key)

        assert token != "ck_live_123"
        assert decrypt_value(token, key=key) == "ck_live_123"

    def test_configured_key_is_used_by_default(self):
        key = Fernet.generate_key().decode()
        with patch.object(settings, 'CREDENTIALS_ENCRYPTION_KEY', key):
            assert decrypt_value(encrypt_value("cs_live_456")) == "cs_live_456"

    def test_wrong_key_fails_cleanly(self):
        token = encrypt_value("ck_live_123", key=Fernet.generate_key().decode())

        with pytest.raises(AppError) as exc_info:
            decrypt_value(token, key=Fernet.generate_key().decode())

        assert exc_info.value.code == "CREDENTIALS_DECRYPTION_FAILED"

    def test_missing_key(self):
        with patch.object(settings, 'CREDENTIALS_ENCRYPTION_KEY', ''):
            with pytest.raises(AppError) as exc_info:
                encrypt_value("ck_live_123")

        assert exc_info.value.code == "ENCRYPTION_KEY_MISSING"


class TestAuth:

    @pytest.fixture(autouse=True)
    def auth_secret(self):
        with patch.object(settings, 'AUTH_SECRET', AUTH_SECRET):
            yield

    def test_token_with_company(self):
        credentials = bearer({"sub": "u-1", "email": "seller@example.com", "companyId": "42"})

        user = asyncio.run(get_current_user(credentials))

        assert user.id == "u-1"
        assert user.company_id == 42
        assert asyncio.run(get_company_id(user)) == 42

    def test_missing_credentials(self):
        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(get_current_user(None))

        assert exc_info.value.status_code == 401

    def test_expired_token(self):
        expired = datetime.now(timezone.utc) - timedelta(minutes=5)
        credentials = bearer({"sub": "u-1", "email": "seller@example.com", "exp": expired})

        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(get_current_user(credentials))

        assert exc_info.value.detail == "Token has expired"

    def test_token_without_company_is_rejected(self):
        user = asyncio.run(get_current_user(bearer({"sub": "u-1", "email": "seller@example.com"})))

        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(get_company_id(user))

        assert exc_info.value.status_code == 401
