from typing import Callable, List

from app_logger import get_logger
from config_cache import normalize_lines
from database import StoreError

log = get_logger("admin")


class AdminEditors:
    """Edit the subject list, occurrence types and class rosters as text."""

    def __init__(self, cache, form, dialogs) -> None:
        self._cache = cache
        self._form = form
        self._dialogs = dialogs

    def _edit(self, message: str, current: List[str], save: Callable[[List[str]], None], refresh: Callable[[], object], done: str) -> bool:
        text = self._dialogs.prompt(message, "\n".join(current))
        if text is None:
            return False
        items = normalize_lines(text)
        try:
            save(items)
        except StoreError as e:
            log.error("Saving %r failed: %s", message, e)
            self._dialogs.alert("Erro ao salvar. Tente novamente.")
            return False
        refresh()
        self._dialogs.alert(done)
        return True

    def edit_subjects(self) -> bool:
        return self._edit(
            "Edite as disciplinas (uma por linha):",
            self._cache.subjects,
            self._cache.save_subjects,
            self._form.refresh_subjects,
            "Disciplinas salvas.",
        )

    def edit_occurrence_types(self) -> bool:
        return self._edit(
            "Edite as ocorrências (uma por linha):",
            self._cache.occurrence_types,
            self._cache.save_occurrence_types,
            self._form.refresh_occurrences,
            "Ocorrências salvas.",
        )

    def edit_roster(self) -> bool:
        grade, class_name = self._form.grade, self._form.class_name
        if not grade or not class_name:
            self._dialogs.alert("Selecione primeiro a série e a turma.")
            return False
        return self._edit(
            f"Edite os alunos da {grade}ª {class_name}.\nUm nome por linha:",
            self._cache.roster_for(grade, class_name),
            lambda names: self._cache.save_roster(grade, class_name, names),
            self._form.refresh_students,
            "Alunos salvos.",
        )
