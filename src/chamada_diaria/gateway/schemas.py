"""Typed shapes of the rows the hosted backend returns.

Every response is parsed here, at the boundary, so the rest of the code
never sees loosely-typed dicts.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..core.enums import AtestadoStatus
from ..core.exceptions import SchemaError

T = TypeVar("T", bound=BaseModel)


class TurmaRow(BaseModel):
    id: str
    nome: str
    numero_sala: Optional[str] = None


class AlunoRow(BaseModel):
    id: str
    nome: str
    matricula: Optional[str] = None
    turma_id: Optional[str] = None


class FaltosoRow(BaseModel):
    aluno_id: str
    nome_aluno: str
    matricula: Optional[str] = None
    turma_id: Optional[str] = None
    nome_turma: Optional[str] = None
    total_faltas: int
    total_records: int = 0


class AtestadoResumoRow(BaseModel):
    aluno_id: str
    nome_aluno: str
    nome_turma: Optional[str] = None
    total_atestados: int
    total_records: int = 0


class AtestadoPendenteRow(BaseModel):
    aluno_id: str
    nome_aluno: str
    nome_turma: Optional[str] = None
    pendentes_count: int
    total_records: int = 0


class TurmaEstatisticaRow(BaseModel):
    turma_id: str
    nome_turma: str
    total_presentes: int
    total_faltas: int
    taxa_presenca: float


class AlunoConsultaRow(BaseModel):
    id: str
    nome: str
    matricula: Optional[str] = None
    turma_id: str
    nome_turma: Optional[str] = None


class AlunoPresencasRow(BaseModel):
    """One student with the ``presente`` flags of every recorded roll-call."""

    id: str
    nome: str
    nome_turma: Optional[str] = None
    presencas: List[bool] = []


class AtestadoRow(BaseModel):
    id: str
    aluno_id: str
    escola_id: Optional[str] = None
    data_inicio: date
    data_fim: date
    descricao: str
    status: AtestadoStatus
    nome_aluno: Optional[str] = None


class DataChamadaRow(BaseModel):
    data_chamada: date


def parse_row(model: Type[T], data: Any) -> T:
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise SchemaError(f"Resposta inesperada para {model.__name__}: {e.error_count()} erro(s)") from e


def parse_rows(model: Type[T], data: Optional[Iterable[Any]]) -> List[T]:
    if data is None:
        return []
    if isinstance(data, (str, bytes, dict)):
        raise SchemaError(f"Esperava uma lista de {model.__name__}")
    return [parse_row(model, item) for item in data]
