import threading
import time
from typing import Any, Dict, Optional

from admin import AdminEditors
from config_cache import ConfigurationCache
from dialogs import AnsweredDialogs, Dialogs
from feed import RecordFeed
from form import FormController
from identity import IdentityProvider
from session import SessionController


def _options(options) -> list:
    return [{"value": o.value, "label": o.label, "disabled": o.disabled} for o in options]


class Workspace:
    """Everything one browser session sees, wired together.

    Handlers for a workspace run one at a time under ``lock``.
    """

    def __init__(self, store, identity: Optional[IdentityProvider] = None, dialogs: Optional[Dialogs] = None) -> None:
        self.lock = threading.Lock()
        self.last_seen = time.monotonic()
        self.closed = False
        self.dialogs = dialogs or AnsweredDialogs()
        self.identity = identity or IdentityProvider(store)
        self.cache = ConfigurationCache(store)
        self.form = FormController(self.cache, store, self.identity, self.dialogs)
        self.feed = RecordFeed(store, self.dialogs)
        self.admin = AdminEditors(self.cache, self.form, self.dialogs)
        self.session = SessionController(self.identity, self.cache, self.form, self.feed, self.dialogs)

    def touch(self) -> None:
        self.last_seen = time.monotonic()

    def idle_for(self) -> float:
        return time.monotonic() - self.last_seen

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.session.close()

    def view(self) -> Dict[str, Any]:
        form, cascade = self.form, self.form.cascade
        user = self.session.user
        return {
            "signed_in": self.session.signed_in,
            "user": user.email if user else "",
            "login_error": self.session.login_error,
            "subjects": list(self.cache.subjects),
            "occurrence_types": list(self.cache.occurrence_types),
            "form": {
                "grade": cascade.grade,
                "class_name": cascade.class_name,
                "class_options": _options(cascade.class_options),
                "student": form.student,
                "student_options": _options(cascade.student_options),
                "student_enabled": cascade.student_enabled,
                "subject": form.subject,
                "occurrences": list(form.occurrences),
                "note": form.note,
                "search": form.search,
            },
        }
