import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import bcrypt
from email_validator import EmailNotValidError, validate_email

from app_logger import get_logger
from schemas import Identity

log = get_logger("identity")

USERS_COLLECTION = "users"
RESETS_COLLECTION = "password_resets"
MIN_PASSWORD_LENGTH = 6
RESET_TOKEN_TTL = timedelta(hours=1)

RESET_LINK_BASE = os.getenv("RESET_LINK_BASE", "/auth/reset/confirm?token=")

AuthObserver = Callable[[Optional[Identity]], None]


class AuthError(Exception):
    """Identity provider refused the request; ``message`` is shown to the user."""

    def __init__(self, message: str, code: str = "auth/error"):
        self.message = message
        self.code = code
        super().__init__(self.message)


def hash_password(password: str) -> str:
    # Bcrypt has a 72 byte limit
    return bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8")[:72], hashed.encode("utf-8"))


class IdentityProvider:
    """Email/password accounts kept in the document store.

    One instance holds one client session: ``current_user`` plus the
    observers notified whenever it changes.
    """

    def __init__(self, store) -> None:
        self._store = store
        self._observers: List[AuthObserver] = []
        self.current_user: Optional[Identity] = None

    def on_auth_state_changed(self, callback: AuthObserver) -> Callable[[], None]:
        """Register ``callback``; it fires now with the current state and on every change."""
        self._observers.append(callback)
        callback(self.current_user)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _set_user(self, user: Optional[Identity]) -> None:
        self.current_user = user
        for cb in list(self._observers):
            cb(user)

    def _find_user(self, email: str) -> Optional[dict]:
        found = self._store.get_documents(USERS_COLLECTION, {"email": email}, limit=1)
        return found[0] if found else None

    def sign_up(self, email: str, password: str) -> Identity:
        email = (email or "").strip().lower()
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            raise AuthError("O e-mail informado é inválido.", "auth/invalid-email")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError("A senha deve ter pelo menos 6 caracteres.", "auth/weak-password")
        if self._find_user(email):
            raise AuthError("Este e-mail já está cadastrado.", "auth/email-already-in-use")

        uid = self._store.create_document(USERS_COLLECTION, {"email": email, "password_hash": hash_password(password)})
        log.info("Registered user %s", email)
        user = Identity(uid=uid, email=email)
        self._set_user(user)
        return user

    def sign_in(self, email: str, password: str) -> Identity:
        email = (email or "").strip().lower()
        doc = self._find_user(email) if email else None
        if not doc or not verify_password(password or "", doc.get("password_hash", "")):
            raise AuthError("E-mail ou senha inválidos.", "auth/invalid-credential")
        user = Identity(uid=doc["id"], email=doc["email"])
        self._set_user(user)
        return user

    def send_password_reset(self, email: str) -> str:
        """Issue a one-hour reset token. No mailer is configured, so the link is logged."""
        email = (email or "").strip().lower()
        doc = self._find_user(email) if email else None
        if not doc:
            raise AuthError("Nenhum usuário encontrado com este e-mail.", "auth/user-not-found")
        token = secrets.token_urlsafe(32)
        self._store.create_document(RESETS_COLLECTION, {
            "user_id": doc["id"],
            "token": token,
            "expires_at": datetime.now(timezone.utc) + RESET_TOKEN_TTL,
        })
        log.info("Password reset link for %s: %s%s", email, RESET_LINK_BASE, token)
        return token

    def confirm_password_reset(self, token: str, new_password: str) -> None:
        found = self._store.get_documents(RESETS_COLLECTION, {"token": token}, limit=1) if token else []
        reset = found[0] if found else None
        expires_at = reset.get("expires_at") if reset else None
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if not reset or expires_at is None or expires_at <= datetime.now(timezone.utc):
            raise AuthError("O link de redefinição é inválido ou expirou.", "auth/invalid-action-code")
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError("A senha deve ter pelo menos 6 caracteres.", "auth/weak-password")

        if not self._store.update_document(USERS_COLLECTION, reset["user_id"], {"password_hash": hash_password(new_password)}):
            raise AuthError("Nenhum usuário encontrado com este e-mail.", "auth/user-not-found")
        self._store.delete_document(RESETS_COLLECTION, reset["id"])
        log.info("Password reset completed for user %s", reset["user_id"])

    def sign_out(self) -> None:
        if self.current_user is not None:
            self._set_user(None)
