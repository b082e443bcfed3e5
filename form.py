from typing import List, Optional

from app_logger import get_logger
from cascade import CascadeState, derive
from database import StoreError
from schemas import IncidentRecord

log = get_logger("form")

RECORDS_COLLECTION = "records"


class FormController:
    """State of the entry form and the submit/clear actions."""

    def __init__(self, cache, store, identity, dialogs) -> None:
        self._cache = cache
        self._store = store
        self._identity = identity
        self._dialogs = dialogs
        self.clear()

    @property
    def grade(self) -> str:
        return self.cascade.grade

    @property
    def class_name(self) -> str:
        return self.cascade.class_name

    def clear(self) -> None:
        self.cascade = CascadeState()
        self.student = ""
        subjects = self._cache.subjects
        self.subject = subjects[0] if subjects else ""
        self.occurrences: List[str] = []
        self.note = ""
        self.search = ""

    def on_grade_change(self, grade: Optional[str]) -> CascadeState:
        self.student = ""
        self.cascade = derive(grade, None, self._cache.roster_for)
        return self.cascade

    def on_class_change(self, class_name: Optional[str]) -> CascadeState:
        self.student = ""
        self.cascade = derive(self.cascade.grade, class_name or "", self._cache.roster_for)
        return self.cascade

    def refresh_students(self) -> CascadeState:
        """Re-derive the student select after the roster changed."""
        student = self.student
        self.on_class_change(self.cascade.class_name)
        if student in self._cache.roster_for(self.grade, self.class_name):
            self.student = student
        return self.cascade

    def refresh_subjects(self) -> None:
        subjects = self._cache.subjects
        if self.subject not in subjects:
            self.subject = subjects[0] if subjects else ""

    def refresh_occurrences(self) -> None:
        self.occurrences = [o for o in self.occurrences if o in self._cache.occurrence_types]

    def set_fields(
        self,
        student: Optional[str] = None,
        subject: Optional[str] = None,
        occurrences: Optional[List[str]] = None,
        note: Optional[str] = None,
        search: Optional[str] = None,
    ) -> None:
        if student is not None:
            offered = {o.value for o in self.cascade.student_options if not o.disabled}
            self.student = student if self.cascade.student_enabled and student in offered else ""
        if subject is not None:
            self.subject = subject
        if occurrences is not None:
            # checkboxes exist only for configured types, in configured order
            chosen = set(occurrences)
            self.occurrences = [o for o in dict.fromkeys(self._cache.occurrence_types) if o in chosen]
        if note is not None:
            self.note = note
        if search is not None:
            self.search = search

    def submit(self) -> Optional[str]:
        """Validate, persist and reset. Returns the new record id, or None."""
        note = (self.note or "").strip()
        if not self.grade or not self.class_name:
            self._dialogs.alert("Selecione a série e a turma.")
            return None
        if not self.student:
            self._dialogs.alert("Selecione o aluno.")
            return None
        if not self.occurrences and not note:
            self._dialogs.alert("Marque ao menos uma ocorrência ou escreva uma observação.")
            return None

        user = self._identity.current_user
        record = IncidentRecord(
            grade=self.grade,
            class_name=self.class_name,
            student=self.student,
            subject=self.subject or None,
            occurrences=list(self.occurrences),
            note=note,
            created_by=user.uid if user else None,
            created_by_email=user.email if user else None,
        )
        try:
            record_id = self._store.create_document(RECORDS_COLLECTION, record.model_dump(exclude={"created_at"}))
        except StoreError as e:
            log.error("Saving record for %s failed: %s", self.student, e)
            self._dialogs.alert("Erro ao salvar o registro. Tente novamente.")
            return None

        log.info("Record %s saved for %s (%sª %s)", record_id, record.student, record.grade, record.class_name)
        self.clear()
        self._dialogs.alert("Registro salvo!")
        return record_id
