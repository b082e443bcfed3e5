"""
Database Schemas for the Student Occurrence Log

Records live in the ``records`` collection; the three editable lists live as
single documents in the ``config`` collection (``disciplines``, ``occurrences``
and ``students``).
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime


class Identity(BaseModel):
    uid: str = Field(..., description="ID do usuário")
    email: str = Field(..., description="E-mail de acesso")


class IncidentRecord(BaseModel):
    grade: str = Field(..., description="Série, ex.: 1, 2, 3")
    class_name: str = Field(..., description="Turma, ex.: M1")
    student: str = Field(..., description="Nome do aluno")
    subject: Optional[str] = Field(None, description="Disciplina (opcional)")
    occurrences: List[str] = Field(default_factory=list, description="Ocorrências marcadas")
    note: str = Field("", description="Observação livre")
    created_at: Optional[datetime] = Field(None, description="Atribuído pelo banco")
    created_by: Optional[str] = Field(None, description="ID de quem registrou")
    created_by_email: Optional[str] = Field(None, description="E-mail de quem registrou")


class ListConfig(BaseModel):
    list: List[str] = Field(default_factory=list)


class RosterConfig(BaseModel):
    data: Dict[str, Dict[str, List[str]]] = Field(default_factory=dict)


# Request payloads

class Credentials(BaseModel):
    email: str = ""
    password: str = ""


class GradeIn(BaseModel):
    grade: str = ""


class ClassIn(BaseModel):
    class_name: str = ""


class ResetConfirm(BaseModel):
    token: str = ""
    password: str = ""


class FormPatch(BaseModel):
    student: Optional[str] = None
    subject: Optional[str] = None
    occurrences: Optional[List[str]] = None
    note: Optional[str] = None
    search: Optional[str] = None


class EditorAnswer(BaseModel):
    text: Optional[str] = Field(None, description="Texto editado; null cancela")
