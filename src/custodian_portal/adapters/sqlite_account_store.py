"""SQLite-backed staff accounts and bearer-token sessions."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from custodian_portal.domain.models import Actor, Role

ROLES: tuple[Role, ...] = ("staff", "admin")


@dataclass(frozen=True)
class StaffAccount:
    """Stored staff account."""

    user_id: str
    email: str
    display_name: str
    role: Role
    password_hash: str
    created_at_utc: str

    def as_actor(self) -> Actor:
        return Actor(user_id=self.user_id, role=self.role)


@dataclass(frozen=True)
class SessionToken:
    token_id: str
    user_id: str
    token_value: str
    expires_at_utc: str
    created_at_utc: str


class SQLiteAccountStore:
    """Persist staff accounts and their access tokens."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_schema()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self._db_path))
        connection.row_factory = sqlite3.Row
        return connection

    def _initialize_schema(self) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS staff_accounts (
                    user_id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    display_name TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'staff',
                    password_hash TEXT NOT NULL,
                    created_at_utc TEXT NOT NULL
                )
                """
            )
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS session_tokens (
                    token_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    token_value TEXT NOT NULL UNIQUE,
                    expires_at_utc TEXT NOT NULL,
                    created_at_utc TEXT NOT NULL,
                    FOREIGN KEY (user_id) REFERENCES staff_accounts(user_id)
                )
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_session_tokens_user
                ON session_tokens(user_id, expires_at_utc DESC)
                """
            )

    def create_account(
        self, *, email: str, display_name: str, password_hash: str, role: Role = "staff"
    ) -> StaffAccount | None:
        """Create an account; None when the email is already registered."""
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        now = datetime.now(UTC).isoformat()
        user_id = uuid4().hex
        try:
            with self._connect() as connection:
                connection.execute(
                    """
                    INSERT INTO staff_accounts
                        (user_id, email, display_name, role, password_hash, created_at_utc)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (user_id, email.lower(), display_name, role, password_hash, now),
                )
        except sqlite3.IntegrityError:
            return None
        return self.get_account(user_id=user_id)

    def get_account_by_email(self, *, email: str) -> StaffAccount | None:
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT user_id, email, display_name, role, password_hash, created_at_utc
                FROM staff_accounts
                WHERE email = ?
                """,
                (email.lower(),),
            ).fetchone()
        if row is None:
            return None
        return self._account_from_row(row)

    def get_account(self, *, user_id: str) -> StaffAccount | None:
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT user_id, email, display_name, role, password_hash, created_at_utc
                FROM staff_accounts
                WHERE user_id = ?
                """,
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return self._account_from_row(row)

    def set_role(self, *, user_id: str, role: Role) -> StaffAccount | None:
        """Change an account's role; None when the account does not exist."""
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        with self._connect() as connection:
            cursor = connection.execute(
                "UPDATE staff_accounts SET role = ? WHERE user_id = ?",
                (role, user_id),
            )
            updated_rows = cursor.rowcount
        if updated_rows == 0:
            return None
        return self.get_account(user_id=user_id)

    def create_token(self, *, user_id: str, token_value: str, expires_at_utc: str) -> SessionToken:
        token_id = uuid4().hex
        now = datetime.now(UTC).isoformat()
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO session_tokens
                    (token_id, user_id, token_value, expires_at_utc, created_at_utc)
                VALUES (?, ?, ?, ?, ?)
                """,
                (token_id, user_id, token_value, expires_at_utc, now),
            )
        return SessionToken(
            token_id=token_id,
            user_id=user_id,
            token_value=token_value,
            expires_at_utc=expires_at_utc,
            created_at_utc=now,
        )

    def get_account_by_token(self, *, token_value: str, now_utc: str) -> StaffAccount | None:
        """Resolve a bearer token into an account if it is still valid."""
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT a.user_id, a.email, a.display_name, a.role, a.password_hash,
                       a.created_at_utc
                FROM session_tokens t
                JOIN staff_accounts a ON a.user_id = t.user_id
                WHERE t.token_value = ? AND t.expires_at_utc > ?
                """,
                (token_value, now_utc),
            ).fetchone()
        if row is None:
            return None
        return self._account_from_row(row)

    def revoke_token(self, *, token_value: str) -> bool:
        with self._connect() as connection:
            cursor = connection.execute(
                "DELETE FROM session_tokens WHERE token_value = ?", (token_value,)
            )
            return cursor.rowcount > 0

    def prune_expired_tokens(self, *, now_utc: str) -> int:
        with self._connect() as connection:
            cursor = connection.execute(
                "DELETE FROM session_tokens WHERE expires_at_utc <= ?", (now_utc,)
            )
            return int(cursor.rowcount)

    @staticmethod
    def _account_from_row(row: sqlite3.Row) -> StaffAccount:
        role = str(row["role"])
        return StaffAccount(
            user_id=str(row["user_id"]),
            email=str(row["email"]),
            display_name=str(row["display_name"]),
            role=role if role in ROLES else "staff",  # type: ignore[arg-type]
            password_hash=str(row["password_hash"]),
            created_at_utc=str(row["created_at_utc"]),
        )
