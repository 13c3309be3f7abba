import copy
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from ...domain.errors import DuplicateEmailError, DuplicateUsernameError, TokenCollisionError
from ...domain.models import Session, TokenType, User, VerificationToken
from ...domain.ports.persistence import CredentialStore


class InMemoryCredentialStore(CredentialStore):
    """Dictionary-backed credential store keyed by auto-incrementing ids.

    Every public method runs under a single lock, so uniqueness checks and
    token consumption are atomic per call. Records are copied on the way in
    and out; callers never hold references into the store.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: Dict[int, User] = {}
        self._user_ids_by_email: Dict[str, int] = {}
        self._user_ids_by_username: Dict[str, int] = {}
        self._tokens: Dict[int, VerificationToken] = {}
        self._token_ids_by_value: Dict[str, int] = {}
        self._code_ids_by_user: Dict[Tuple[int, str], int] = {}
        self._sessions: Dict[int, Session] = {}
        self._session_ids_by_token: Dict[str, int] = {}
        self._next_user_id = 1
        self._next_token_id = 1
        self._next_session_id = 1

    def close(self) -> None:
        with self._lock:
            self._users.clear()
            self._user_ids_by_email.clear()
            self._user_ids_by_username.clear()
            self._tokens.clear()
            self._token_ids_by_value.clear()
            self._code_ids_by_user.clear()
            self._sessions.clear()
            self._session_ids_by_token.clear()

    # UserRepository API ----------------------------------------------------
    def get_user_by_id(self, user_id: int) -> Optional[User]:
        with self._lock:
            return copy.copy(self._users.get(user_id))

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            user_id = self._user_ids_by_email.get(email.strip().lower())
            return copy.copy(self._users.get(user_id)) if user_id else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            user_id = self._user_ids_by_username.get(username)
            return copy.copy(self._users.get(user_id)) if user_id else None

    def create_user(
        self,
        email: str,
        password_hash: str,
        username: Optional[str] = None,
        name: Optional[str] = None,
        email_verified: bool = False,
    ) -> User:
        normalized = email.strip().lower()
        with self._lock:
            if normalized in self._user_ids_by_email:
                raise DuplicateEmailError()
            if username and username in self._user_ids_by_username:
                raise DuplicateUsernameError()
            user = User(
                id=self._next_user_id,
                email=normalized,
                password_hash=password_hash,
                username=username or None,
                name=name or None,
                email_verified=email_verified,
                is_active=True,
                created_at=self._now(),
                last_login=None,
            )
            self._next_user_id += 1
            self._users[user.id] = user
            self._user_ids_by_email[normalized] = user.id
            if user.username:
                self._user_ids_by_username[user.username] = user.id
            return copy.copy(user)

    def set_email_verified(self, user_id: int, verified: bool) -> bool:
        return self._update_user(user_id, email_verified=verified)

    def set_last_login(self, user_id: int, when: datetime) -> bool:
        return self._update_user(user_id, last_login=when)

    def set_password_hash(self, user_id: int, password_hash: str) -> bool:
        return self._update_user(user_id, password_hash=password_hash)

    def set_two_factor_enabled(self, user_id: int, enabled: bool) -> bool:
        return self._update_user(user_id, two_factor_enabled=enabled)

    # VerificationTokenRepository API ---------------------------------------
    def create_verification_token(
        self,
        user_id: int,
        token: str,
        token_type: TokenType,
        expires_at: datetime,
    ) -> VerificationToken:
        token_type = TokenType(token_type)
        with self._lock:
            # Two-factor codes only need to be unique per user.
            if token_type == TokenType.TWO_FACTOR:
                index, key = self._code_ids_by_user, (user_id, token)
            else:
                index, key = self._token_ids_by_value, token
            if key in index:
                raise TokenCollisionError()
            record = VerificationToken(
                id=self._next_token_id,
                user_id=user_id,
                token=token,
                type=token_type,
                expires_at=expires_at,
                used=False,
                created_at=self._now(),
            )
            self._next_token_id += 1
            self._tokens[record.id] = record
            index[key] = record.id
            return copy.copy(record)

    def get_verification_token(self, token: str) -> Optional[VerificationToken]:
        with self._lock:
            token_id = self._token_ids_by_value.get(token)
            return copy.copy(self._tokens.get(token_id)) if token_id else None

    def get_latest_unused_verification_token(
        self, user_id: int, token_type: TokenType
    ) -> Optional[VerificationToken]:
        with self._lock:
            candidates = [
                record
                for record in self._tokens.values()
                if record.user_id == user_id and record.type == token_type and not record.used
            ]
            if not candidates:
                return None
            return copy.copy(max(candidates, key=lambda record: record.id))

    def mark_verification_token_used(self, token_id: int) -> bool:
        with self._lock:
            record = self._tokens.get(token_id)
            if record is None or record.used:
                return False
            record.used = True
            return True

    def list_verification_tokens(
        self, user_id: int, token_type: Optional[TokenType] = None
    ) -> List[VerificationToken]:
        with self._lock:
            return [
                copy.copy(record)
                for record in self._tokens.values()
                if record.user_id == user_id and (token_type is None or record.type == token_type)
            ]

    # SessionRepository API -------------------------------------------------
    def create_session(
        self,
        user_id: int,
        token: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Session:
        with self._lock:
            if token in self._session_ids_by_token:
                raise TokenCollisionError()
            session = Session(
                id=self._next_session_id,
                user_id=user_id,
                token=token,
                expires_at=expires_at,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=self._now(),
            )
            self._next_session_id += 1
            self._sessions[session.id] = session
            self._session_ids_by_token[token] = session.id
            return copy.copy(session)

    def get_session_by_token(self, token: str) -> Optional[Session]:
        with self._lock:
            session_id = self._session_ids_by_token.get(token)
            return copy.copy(self._sessions.get(session_id)) if session_id else None

    def list_sessions_for_user(self, user_id: int) -> List[Session]:
        with self._lock:
            return [copy.copy(s) for s in self._sessions.values() if s.user_id == user_id]

    def delete_session_by_token(self, token: str) -> bool:
        with self._lock:
            session_id = self._session_ids_by_token.pop(token, None)
            if session_id is None:
                return False
            del self._sessions[session_id]
            return True

    def delete_sessions_for_user(self, user_id: int) -> int:
        with self._lock:
            doomed = [s for s in self._sessions.values() if s.user_id == user_id]
            for session in doomed:
                del self._sessions[session.id]
                del self._session_ids_by_token[session.token]
            return len(doomed)

    # Helpers ----------------------------------------------------------------
    def _update_user(self, user_id: int, **changes) -> bool:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return False
            for attr, value in changes.items():
                setattr(user, attr, value)
            return True

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)
