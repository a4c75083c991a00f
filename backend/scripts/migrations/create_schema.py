#!/usr/bin/env python3
"""
Create the Shipcrowd database schema

Creates every table declared in shipcrowd.models (orders, shipments,
WooCommerce stores, product mappings, sync logs, webhook events).
Existing tables are left untouched.

Author: TM3
Date: 2026-02-11

Usage:
    export DATABASE_URL="postgresql://..."
    python3 backend/scripts/migrations/create_schema.py
"""
import sys
from pathlib import Path
from dotenv import load_dotenv

backend_dir = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(backend_dir))
load_dotenv(backend_dir / '.env')

from shipcrowd.core.database import Base, get_engine
import shipcrowd.models  # noqa: F401  (registers the tables on Base.metadata)


def main():
    print("🗄️  Creating Shipcrowd schema")

    try:
        engine = get_engine()
        Base.metadata.create_all(engine)
    except Exception as e:
        print(f"❌ Schema creation failed: {e}")
        return 1

    for table in sorted(Base.metadata.tables):
        print(f"  ✅ {table}")

    print(f"\n📊 {len(Base.metadata.tables)} tables ready")
    return 0


if __name__ == "__main__":
    sys.exit(main())
