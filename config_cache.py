from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from pydantic import ValidationError

from app_logger import get_logger
from database import StoreError
from schemas import ListConfig, RosterConfig

log = get_logger("config")

CONFIG_COLLECTION = "config"
SUBJECTS_DOC = "disciplines"
OCCURRENCES_DOC = "occurrences"
STUDENTS_DOC = "students"

DEFAULT_SUBJECTS = ["Português", "Matemática", "História", "Geografia"]
DEFAULT_OCCURRENCE_TYPES = [
    "Não cumpriu tarefa",
    "Sem material",
    "Uso de celular em sala",
    "Uso de fone em sala",
    "Chegou atrasado",
    "Desrespeitou o professor",
]


def normalize_lines(text: str) -> List[str]:
    """One entry per line, trimmed, blanks dropped. Order and duplicates kept."""
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


class ConfigurationCache:
    def __init__(self, store) -> None:
        self._store = store
        self.reset()

    def reset(self) -> None:
        self.subjects: List[str] = []
        self.occurrence_types: List[str] = []
        self.roster: Dict[str, Dict[str, List[str]]] = {}

    def load(self) -> None:
        """Fetch the three config documents. Store errors propagate."""
        with ThreadPoolExecutor(max_workers=3) as pool:
            futures = [
                pool.submit(self._store.get_document, CONFIG_COLLECTION, doc_id)
                for doc_id in (SUBJECTS_DOC, OCCURRENCES_DOC, STUDENTS_DOC)
            ]
            subjects, occurrences, students = [f.result() for f in futures]

        try:
            subject_list = ListConfig(list=subjects.get("list") or []).list if subjects else list(DEFAULT_SUBJECTS)
            occurrence_list = ListConfig(list=occurrences.get("list") or []).list if occurrences else list(DEFAULT_OCCURRENCE_TYPES)
            roster = RosterConfig(data=students.get("data") or {}).data if students else {}
        except ValidationError as e:
            raise StoreError(f"Malformed configuration document: {e}") from e
        self.subjects = subject_list
        self.occurrence_types = occurrence_list
        self.roster = roster
        log.info(
            "Loaded config: %d subjects, %d occurrence types, %d grades in roster",
            len(self.subjects), len(self.occurrence_types), len(self.roster),
        )

    def roster_for(self, grade: Optional[str], class_name: Optional[str]) -> List[str]:
        return list(self.roster.get(grade or "", {}).get(class_name or "", []))

    def save_subjects(self, items: List[str]) -> None:
        items = list(items)
        self._store.set_fields(CONFIG_COLLECTION, SUBJECTS_DOC, {"list": items})
        self.subjects = items

    def save_occurrence_types(self, items: List[str]) -> None:
        items = list(items)
        self._store.set_fields(CONFIG_COLLECTION, OCCURRENCES_DOC, {"list": items})
        self.occurrence_types = items

    def save_roster(self, grade: str, class_name: str, names: List[str]) -> None:
        names = list(names)
        self._store.set_fields(CONFIG_COLLECTION, STUDENTS_DOC, {f"data.{grade}.{class_name}": names})
        self.roster.setdefault(grade, {})[class_name] = names
