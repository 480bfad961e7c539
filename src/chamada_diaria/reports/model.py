from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, Optional, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a server-side paged report."""

    items: Sequence[T]
    page: int
    page_size: int
    total_records: int

    @property
    def total_pages(self) -> int:
        if self.total_records <= 0:
            return 0
        return math.ceil(self.total_records / self.page_size)


@dataclass(frozen=True)
class AlertaFaltas:
    aluno_id: str
    nome_aluno: str
    nome_turma: Optional[str]
    total_aulas: int
    total_faltas: int
    taxa_faltas: int


@dataclass(frozen=True)
class ConsultaFaltas:
    """Resultado da consulta de faltas feita pelo próprio aluno."""

    aluno_id: str
    nome: str
    matricula: Optional[str]
    nome_turma: Optional[str]
    total_aulas: int
    total_faltas: int
    faltas_justificadas: int
    frequencia: int
