from typing import Optional

from app_logger import get_logger
from database import StoreError
from identity import AuthError
from schemas import Identity

log = get_logger("session")


class SessionController:
    """Sign-in flows, and what happens when the signed-in user changes."""

    def __init__(self, identity, cache, form, feed, dialogs) -> None:
        self._identity = identity
        self._cache = cache
        self._form = form
        self._feed = feed
        self._dialogs = dialogs
        self._generation = 0
        self.user: Optional[Identity] = None
        self.login_error = ""
        self.ready = False
        self._unsubscribe = identity.on_auth_state_changed(self._on_auth_state_changed)

    @property
    def signed_in(self) -> bool:
        return self.user is not None

    def _attempt(self, call, *args) -> bool:
        self.login_error = ""
        try:
            call(*args)
        except AuthError as e:
            self.login_error = e.message
            return False
        except StoreError as e:
            log.error("Identity provider unavailable: %s", e)
            self.login_error = "Não foi possível conectar. Tente novamente."
            return False
        return True

    def login(self, email: str, password: str) -> bool:
        return self._attempt(self._identity.sign_in, (email or "").strip(), password)

    def register(self, email: str, password: str) -> bool:
        return self._attempt(self._identity.sign_up, (email or "").strip(), password)

    def reset_password(self, email: str) -> bool:
        email = (email or "").strip()
        if not email:
            self.login_error = "Digite seu e-mail para receber o link."
            return False
        if not self._attempt(self._identity.send_password_reset, email):
            return False
        self._dialogs.alert("E-mail de redefinição enviado.")
        return True

    def confirm_password_reset(self, token: str, password: str) -> bool:
        if not self._attempt(self._identity.confirm_password_reset, (token or "").strip(), password):
            return False
        self._dialogs.alert("Senha redefinida. Entre com a nova senha.")
        return True

    def logout(self) -> None:
        self._identity.sign_out()

    def close(self) -> None:
        self._unsubscribe()
        self._feed.reset()

    def _on_auth_state_changed(self, user: Optional[Identity]) -> None:
        self._generation += 1
        generation = self._generation
        self.user = user
        self.ready = False

        if user is None:
            self._feed.reset()
            self._cache.reset()
            self._form.clear()
            return

        log.info("Session started for %s", user.email)
        try:
            self._cache.load()
        except StoreError as e:
            log.error("Loading configuration for %s failed: %s", user.email, e)
            self._dialogs.alert("Erro ao carregar configurações. Verifique as permissões do banco de dados.")
            return
        if generation != self._generation:
            # the session changed while configuration was loading
            if self.user is None:
                self._cache.reset()
            return

        self._form.refresh_subjects()
        self._form.refresh_occurrences()
        self._form.on_grade_change(self._form.grade)
        self._feed.subscribe()
        self.ready = True
