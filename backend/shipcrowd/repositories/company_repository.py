"""
Company Repository (read-only)

Companies are managed by onboarding; sync only needs their settings.
"""
from typing import Optional

from shipcrowd.core.database import connection_scope


class CompanyRepository:

    def get_default_warehouse_id(self, company_id: int, conn=None) -> Optional[int]:
        """companies.settings->default_warehouse_id, or None when unset"""
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    SELECT (settings->>'default_warehouse_id')::int as default_warehouse_id
                    FROM companies
                    WHERE id = %s
                """, (company_id,))
                row = cursor.fetchone()
                return row['default_warehouse_id'] if row else None
            finally:
                cursor.close()
