from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Sequence

from ..common.datetime_utils import parse_iso_datetime


@dataclass(frozen=True)
class Turma:
    turma_id: str
    nome: str
    numero_sala: Optional[str] = None


@dataclass(frozen=True)
class Aluno:
    aluno_id: str
    nome: str
    matricula: Optional[str]
    turma_id: Optional[str]


@dataclass(frozen=True)
class ReferenceSnapshot:
    """Cached reference data (turmas + roster) for offline roll-calls."""

    school_id: str
    turmas: Sequence[Turma]
    alunos: Sequence[Aluno]
    timestamp: datetime

    def turma(self, turma_id: str) -> Optional[Turma]:
        return next((t for t in self.turmas if t.turma_id == turma_id), None)

    def roster(self, turma_id: str) -> list[Aluno]:
        return sorted((a for a in self.alunos if a.turma_id == turma_id), key=lambda a: a.nome.lower())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "school_id": self.school_id,
            "timestamp": self.timestamp.isoformat(),
            "turmas": [
                {"turma_id": t.turma_id, "nome": t.nome, "numero_sala": t.numero_sala} for t in self.turmas
            ],
            "alunos": [
                {"aluno_id": a.aluno_id, "nome": a.nome, "matricula": a.matricula, "turma_id": a.turma_id}
                for a in self.alunos
            ],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReferenceSnapshot":
        return cls(
            school_id=str(data["school_id"]),
            timestamp=parse_iso_datetime(data["timestamp"]),
            turmas=[Turma(**t) for t in data.get("turmas") or []],
            alunos=[Aluno(**a) for a in data.get("alunos") or []],
        )
