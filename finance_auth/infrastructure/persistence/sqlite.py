import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from ...domain.errors import DuplicateEmailError, DuplicateUsernameError, TokenCollisionError
from ...domain.models import Session, TokenType, User, VerificationToken
from ...domain.ports.persistence import CredentialStore


class SQLiteCredentialStore(CredentialStore):
    """SQLite-backed implementation of the credential store."""

    def __init__(self, path: Path) -> None:
        if str(path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._initialize()

    def _initialize(self) -> None:
        with self._lock, self._conn:
            self._conn.executescript(
                """
                PRAGMA foreign_keys = ON;

                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    username TEXT UNIQUE,
                    password_hash TEXT NOT NULL,
                    name TEXT,
                    email_verified INTEGER NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    two_factor_enabled INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    last_login TEXT
                );

                CREATE TABLE IF NOT EXISTS verification_tokens (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    token TEXT NOT NULL,
                    type TEXT NOT NULL,
                    expires_at TEXT NOT NULL,
                    used INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id)
                );

                CREATE UNIQUE INDEX IF NOT EXISTS idx_verification_tokens_link
                    ON verification_tokens(token) WHERE type != 'two_factor';

                CREATE UNIQUE INDEX IF NOT EXISTS idx_verification_tokens_code
                    ON verification_tokens(user_id, token) WHERE type = 'two_factor';

                CREATE INDEX IF NOT EXISTS idx_verification_tokens_user_type
                    ON verification_tokens(user_id, type, used);

                CREATE TABLE IF NOT EXISTS sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    token TEXT NOT NULL UNIQUE,
                    expires_at TEXT NOT NULL,
                    ip_address TEXT,
                    user_agent TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id)
                );

                CREATE INDEX IF NOT EXISTS idx_sessions_user_id
                    ON sessions(user_id);
                """
            )

    def close(self) -> None:
        self._conn.close()

    # UserRepository API ----------------------------------------------------
    def get_user_by_id(self, user_id: int) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
            )
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM users WHERE username = ?", (username,))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def create_user(
        self,
        email: str,
        password_hash: str,
        username: Optional[str] = None,
        name: Optional[str] = None,
        email_verified: bool = False,
    ) -> User:
        normalized = email.strip().lower()
        now = self._now()
        try:
            with self._lock, self._conn:
                cur = self._conn.execute(
                    """
                    INSERT INTO users (
                        email, username, password_hash, name,
                        email_verified, is_active, two_factor_enabled, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, 1, 0, ?)
                    """,
                    (normalized, username or None, password_hash, name or None, int(email_verified), now),
                )
                user_id = cur.lastrowid
                cur = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
                row = cur.fetchone()
        except sqlite3.IntegrityError as exc:
            message = str(exc)
            if "users.email" in message:
                raise DuplicateEmailError() from exc
            if "users.username" in message:
                raise DuplicateUsernameError() from exc
            raise
        if not row:
            raise RuntimeError("Failed to persist user.")
        return self._row_to_user(row)

    def set_email_verified(self, user_id: int, verified: bool) -> bool:
        return self._update("UPDATE users SET email_verified = ? WHERE id = ?", (int(verified), user_id))

    def set_last_login(self, user_id: int, when: datetime) -> bool:
        return self._update("UPDATE users SET last_login = ? WHERE id = ?", (self._format(when), user_id))

    def set_password_hash(self, user_id: int, password_hash: str) -> bool:
        return self._update("UPDATE users SET password_hash = ? WHERE id = ?", (password_hash, user_id))

    def set_two_factor_enabled(self, user_id: int, enabled: bool) -> bool:
        return self._update(
            "UPDATE users SET two_factor_enabled = ? WHERE id = ?", (int(enabled), user_id)
        )

    # VerificationTokenRepository API ---------------------------------------
    def create_verification_token(
        self,
        user_id: int,
        token: str,
        token_type: TokenType,
        expires_at: datetime,
    ) -> VerificationToken:
        try:
            with self._lock, self._conn:
                cur = self._conn.execute(
                    """
                    INSERT INTO verification_tokens (user_id, token, type, expires_at, used, created_at)
                    VALUES (?, ?, ?, ?, 0, ?)
                    """,
                    (user_id, token, TokenType(token_type).value, self._format(expires_at), self._now()),
                )
                token_id = cur.lastrowid
                cur = self._conn.execute("SELECT * FROM verification_tokens WHERE id = ?", (token_id,))
                row = cur.fetchone()
        except sqlite3.IntegrityError as exc:
            if "verification_tokens.token" in str(exc):
                raise TokenCollisionError() from exc
            raise
        if not row:
            raise RuntimeError("Failed to persist verification token.")
        return self._row_to_token(row)

    def get_verification_token(self, token: str) -> Optional[VerificationToken]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT * FROM verification_tokens WHERE token = ? AND type != ?",
                (token, TokenType.TWO_FACTOR.value),
            )
            row = cur.fetchone()
        return self._row_to_token(row) if row else None

    def get_latest_unused_verification_token(
        self, user_id: int, token_type: TokenType
    ) -> Optional[VerificationToken]:
        with self._lock:
            cur = self._conn.execute(
                """
                SELECT * FROM verification_tokens
                WHERE user_id = ? AND type = ? AND used = 0
                ORDER BY id DESC LIMIT 1
                """,
                (user_id, TokenType(token_type).value),
            )
            row = cur.fetchone()
        return self._row_to_token(row) if row else None

    def mark_verification_token_used(self, token_id: int) -> bool:
        return self._update(
            "UPDATE verification_tokens SET used = 1 WHERE id = ? AND used = 0", (token_id,)
        )

    def list_verification_tokens(
        self, user_id: int, token_type: Optional[TokenType] = None
    ) -> List[VerificationToken]:
        query = "SELECT * FROM verification_tokens WHERE user_id = ?"
        params: List[Any] = [user_id]
        if token_type is not None:
            query += " AND type = ?"
            params.append(TokenType(token_type).value)
        query += " ORDER BY id ASC"
        with self._lock:
            cur = self._conn.execute(query, params)
            rows = cur.fetchall()
        return [self._row_to_token(row) for row in rows]

    # SessionRepository API -------------------------------------------------
    def create_session(
        self,
        user_id: int,
        token: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Session:
        try:
            with self._lock, self._conn:
                cur = self._conn.execute(
                    """
                    INSERT INTO sessions (user_id, token, expires_at, ip_address, user_agent, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (user_id, token, self._format(expires_at), ip_address, user_agent, self._now()),
                )
                session_id = cur.lastrowid
                cur = self._conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,))
                row = cur.fetchone()
        except sqlite3.IntegrityError as exc:
            if "sessions.token" in str(exc):
                raise TokenCollisionError() from exc
            raise
        if not row:
            raise RuntimeError("Failed to persist session.")
        return self._row_to_session(row)

    def get_session_by_token(self, token: str) -> Optional[Session]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM sessions WHERE token = ?", (token,))
            row = cur.fetchone()
        return self._row_to_session(row) if row else None

    def list_sessions_for_user(self, user_id: int) -> List[Session]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT * FROM sessions WHERE user_id = ? ORDER BY id ASC", (user_id,)
            )
            rows = cur.fetchall()
        return [self._row_to_session(row) for row in rows]

    def delete_session_by_token(self, token: str) -> bool:
        return self._update("DELETE FROM sessions WHERE token = ?", (token,))

    def delete_sessions_for_user(self, user_id: int) -> int:
        with self._lock, self._conn:
            cur = self._conn.execute("DELETE FROM sessions WHERE user_id = ?", (user_id,))
            return cur.rowcount

    # Helpers ----------------------------------------------------------------
    def _update(self, statement: str, params: tuple) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute(statement, params)
            return cur.rowcount > 0

    @classmethod
    def _now(cls) -> str:
        return cls._format(datetime.now(timezone.utc))

    @staticmethod
    def _format(value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()

    @staticmethod
    def _parse_datetime(value: str) -> datetime:
        result = datetime.fromisoformat(value)
        if result.tzinfo is None:
            return result.replace(tzinfo=timezone.utc)
        return result.astimezone(timezone.utc)

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            username=row["username"],
            name=row["name"],
            email_verified=bool(row["email_verified"]),
            is_active=bool(row["is_active"]),
            two_factor_enabled=bool(row["two_factor_enabled"]),
            created_at=self._parse_datetime(row["created_at"]),
            last_login=self._parse_datetime(row["last_login"]) if row["last_login"] else None,
        )

    def _row_to_token(self, row: sqlite3.Row) -> VerificationToken:
        return VerificationToken(
            id=row["id"],
            user_id=row["user_id"],
            token=row["token"],
            type=TokenType(row["type"]),
            expires_at=self._parse_datetime(row["expires_at"]),
            used=bool(row["used"]),
            created_at=self._parse_datetime(row["created_at"]),
        )

    def _row_to_session(self, row: sqlite3.Row) -> Session:
        return Session(
            id=row["id"],
            user_id=row["user_id"],
            token=row["token"],
            expires_at=self._parse_datetime(row["expires_at"]),
            ip_address=row["ip_address"],
            user_agent=row["user_agent"],
            created_at=self._parse_datetime(row["created_at"]),
        )
