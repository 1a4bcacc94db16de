from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .db import Subscription
from .errors import InvalidCredentials, RegistrationError, UserNotFound
from .models import Identity

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PBKDF2_ROUNDS = 120_000


@dataclass
class UserAccount:
    uid: str
    email: str
    password_hash: bytes
    salt: bytes
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_sign_in_at: Optional[datetime] = None

    def public(self) -> dict:
        return {
            "uid": self.uid,
            "email": self.email,
            "created_at": self.created_at.isoformat(),
            "last_sign_in_at": self.last_sign_in_at.isoformat() if self.last_sign_in_at else None,
        }


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ROUNDS)


class InMemoryAuthProvider:
    """Email/password accounts with bearer tokens."""

    def __init__(self, min_password_length: int = 6):
        self.min_password_length = min_password_length
        self._users: Dict[str, UserAccount] = {}
        self._tokens: Dict[str, str] = {}
        self._watchers: Dict[str, List[Subscription]] = {}

    def register(self, email: str, password: str) -> UserAccount:
        email = email.strip().lower()
        if not EMAIL_RE.match(email):
            raise RegistrationError("The email address is not valid.")
        if len(password) < self.min_password_length:
            raise RegistrationError(f"Password must be at least {self.min_password_length} characters.")
        if any(u.email == email for u in self._users.values()):
            raise RegistrationError("The email address is already in use by another account.")

        salt = secrets.token_bytes(16)
        account = UserAccount(uid=uuid.uuid4().hex, email=email, password_hash=_hash_password(password, salt), salt=salt)
        self._users[account.uid] = account
        logger.info("Registered user %s", account.uid)
        return account

    def sign_in(self, email: str, password: str) -> str:
        email = email.strip().lower()
        account = next((u for u in self._users.values() if u.email == email), None)
        if account is None or not hmac.compare_digest(account.password_hash, _hash_password(password, account.salt)):
            raise InvalidCredentials()

        token = secrets.token_urlsafe(32)
        self._tokens[token] = account.uid
        account.last_sign_in_at = datetime.now(timezone.utc)
        self._emit(token, self._identity(account))
        return token

    def sign_out(self, token: str) -> None:
        if self._tokens.pop(token, None) is not None:
            self._emit(token, None)
        for sub in self._watchers.pop(token, []):
            sub.cancel()

    def current_identity(self, token: Optional[str]) -> Optional[Identity]:
        if not token:
            return None
        uid = self._tokens.get(token)
        account = self._users.get(uid) if uid else None
        return self._identity(account) if account else None

    def subscribe(self, token: str) -> Subscription:
        """Auth-state stream for a token: the current identity, then ``None`` on sign-out."""

        sub = Subscription(f"auth/{token}", on_cancel=lambda s: self._drop_watcher(token, s))
        self._watchers.setdefault(token, []).append(sub)
        sub.deliver(self.current_identity(token))
        return sub

    def list_users(self) -> List[UserAccount]:
        return sorted(self._users.values(), key=lambda u: u.created_at)

    def delete_user(self, uid: str) -> None:
        if uid not in self._users:
            raise UserNotFound()
        del self._users[uid]
        for token in [t for t, owner in self._tokens.items() if owner == uid]:
            self.sign_out(token)
        logger.info("Deleted user %s", uid)

    def _identity(self, account: UserAccount) -> Identity:
        return Identity(participant_id=account.uid, display_name=account.email)

    def _emit(self, token: str, identity: Optional[Identity]) -> None:
        for sub in self._watchers.get(token, []):
            sub.deliver(identity)

    def _drop_watcher(self, token: str, sub: Subscription) -> None:
        subs = self._watchers.get(token, [])
        if sub in subs:
            subs.remove(sub)
