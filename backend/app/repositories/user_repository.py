"""
User Repository - Data Access Layer for Users

Handles the users and user_roles tables and returns User domain models.
Roles live in user_roles keyed by the Supabase Auth id; a missing row means
"customer".

Author: TM3
Date: 2025-10-17
"""
from typing import List, Optional

from app.core.database import Database
from app.domain.user import User
from app.repositories.sql import build_set_clause, is_uuid

USER_COLUMNS = """
    u.id, u.user_id, u.email, u.full_name, u.phone,
    u.created_at, u.updated_at,
    COALESCE(r.role, 'customer') AS role
"""

UPDATABLE_COLUMNS = ("full_name", "phone", "email")


class UserRepository:
    """
    Repository for User data access

    All SQL queries for users are centralized here.
    """

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _map_row_to_user(row: dict) -> User:
        return User(
            id=str(row['id']),
            user_id=str(row['user_id']),
            email=row.get('email'),
            full_name=row.get('full_name'),
            phone=row.get('phone'),
            role=row.get('role') or 'customer',
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at')
        )

    def find_all(self, conn=None) -> List[User]:
        """All users with their role, newest first"""
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    SELECT {USER_COLUMNS}
                    FROM users u
                    LEFT JOIN user_roles r ON r.user_id = u.user_id
                    ORDER BY u.created_at DESC
                """)
                rows = cursor.fetchall()

        return [self._map_row_to_user(row) for row in rows]

    def find_by_id(self, user_id: str, conn=None) -> Optional[User]:
        """
        Find user by internal users.id

        Returns:
            User or None if not found
        """
        if not is_uuid(user_id):
            return None

        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    SELECT {USER_COLUMNS}
                    FROM users u
                    LEFT JOIN user_roles r ON r.user_id = u.user_id
                    WHERE u.id = %s
                """, (user_id,))
                row = cursor.fetchone()

        return self._map_row_to_user(row) if row else None

    def find_by_auth_id(self, auth_id: str, conn=None) -> Optional[User]:
        """
        Find user by Supabase Auth id

        Returns:
            User or None if not found
        """
        if not is_uuid(auth_id):
            return None

        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    SELECT {USER_COLUMNS}
                    FROM users u
                    LEFT JOIN user_roles r ON r.user_id = u.user_id
                    WHERE u.user_id = %s
                """, (auth_id,))
                row = cursor.fetchone()

        return self._map_row_to_user(row) if row else None

    def update(self, user_id: str, fields: dict, conn=None) -> Optional[User]:
        """
        Update profile columns (full_name, phone, email)

        Returns:
            Updated user or None if not found
        """
        if not fields:
            return self.find_by_id(user_id, conn=conn)

        set_clause, params = build_set_clause(fields, UPDATABLE_COLUMNS)

        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    UPDATE users SET {set_clause}
                    WHERE id = %s
                    RETURNING id
                """, params + [user_id])
                row = cursor.fetchone()

            if not row:
                return None
            return self.find_by_id(user_id, conn=conn)

    def update_role(self, auth_id: str, role: str, conn=None) -> str:
        """Set the role for a Supabase Auth id, creating the row if missing"""
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("""
                    INSERT INTO user_roles (user_id, role)
                    VALUES (%s, %s)
                    ON CONFLICT (user_id) DO UPDATE SET role = EXCLUDED.role
                    RETURNING role
                """, (auth_id, role))
                row = cursor.fetchone()

        return row['role']

    def anonymize(self, user_id: str, full_name: str, email: str, conn=None) -> bool:
        """Replace personal data while keeping the row (and its orders)"""
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("""
                    UPDATE users
                    SET full_name = %s, email = %s, phone = NULL, updated_at = NOW()
                    WHERE id = %s
                """, (full_name, email, user_id))
                return cursor.rowcount > 0

    def delete_role(self, auth_id: str, conn=None) -> int:
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("DELETE FROM user_roles WHERE user_id = %s", (auth_id,))
                return cursor.rowcount

    def delete(self, user_id: str, conn=None) -> bool:
        """Delete the users row only; callers remove dependent rows first"""
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("DELETE FROM users WHERE id = %s", (user_id,))
                return cursor.rowcount > 0
