"""Grade -> class -> student select derivation."""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

GRADE_CLASSES: Dict[str, List[str]] = {
    "1": ["M1", "M2", "M3", "M4", "M5"],
    "2": ["M1", "M2", "M3", "M4"],
    "3": ["M1", "M2", "M3", "M4", "M5", "M6"],
}

NO_STUDENTS_LABEL = "Cadastre alunos (Gerenciar Alunos)"
PICK_STUDENT_LABEL = "Selecione o aluno..."


def classes_for(grade: Optional[str]) -> List[str]:
    return list(GRADE_CLASSES.get(grade or "", []))


@dataclass(frozen=True)
class Option:
    value: str
    label: str
    disabled: bool = False


@dataclass(frozen=True)
class CascadeState:
    grade: str = ""
    class_name: str = ""
    class_options: List[Option] = field(default_factory=list)
    student_options: List[Option] = field(default_factory=list)
    student_enabled: bool = False


def student_options(names: List[str]) -> List[Option]:
    if not names:
        return [Option("", NO_STUDENTS_LABEL, disabled=True)]
    return [Option("", PICK_STUDENT_LABEL)] + [Option(n, n) for n in names]


def derive(grade: Optional[str], class_name: Optional[str], roster_for: Callable[[str, str], List[str]]) -> CascadeState:
    """Compute the select contents for the given grade/class.

    With ``class_name`` None the grade's first class is selected, the way a
    freshly filled ``<select>`` selects its first option. A class that is not
    offered for the grade selects nothing. Unknown grades yield empty,
    disabled selects.
    """
    grade = grade or ""
    classes = classes_for(grade)
    if not classes:
        return CascadeState(grade=grade)

    if class_name is None:
        selected = classes[0]
    else:
        selected = class_name if class_name in classes else ""
    names = roster_for(grade, selected) if selected else []
    return CascadeState(
        grade=grade,
        class_name=selected,
        class_options=[Option(c, f"{grade}ª {c}") for c in classes],
        student_options=student_options(names),
        student_enabled=bool(names),
    )
