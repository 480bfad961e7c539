from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional

from ..common.datetime_utils import parse_iso_date, parse_iso_datetime
from ..core.enums import PresencaStatus


@dataclass(frozen=True)
class MarkKey:
    """Natural key of an attendance mark: one student, one class, one day."""

    student_id: str
    class_id: str
    date: date

    def as_str(self) -> str:
        return f"{self.student_id}:{self.class_id}:{self.date.isoformat()}"

    @classmethod
    def parse(cls, value: str) -> "MarkKey":
        student_id, class_id, day = value.rsplit(":", 2)
        return cls(student_id=student_id, class_id=class_id, date=parse_iso_date(day))


@dataclass(frozen=True)
class AttendanceMark:
    """Entidade de domínio: a presença de um aluno em uma turma num dia."""

    student_id: str
    class_id: str
    school_id: str
    present: bool
    justified: bool
    date: date
    recorded_at: datetime

    @property
    def key(self) -> MarkKey:
        return MarkKey(student_id=self.student_id, class_id=self.class_id, date=self.date)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "class_id": self.class_id,
            "school_id": self.school_id,
            "present": self.present,
            "justified": self.justified,
            "date": self.date.isoformat(),
            "recorded_at": self.recorded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AttendanceMark":
        return cls(
            student_id=str(data["student_id"]),
            class_id=str(data["class_id"]),
            school_id=str(data["school_id"]),
            present=bool(data["present"]),
            justified=bool(data["justified"]),
            date=parse_iso_date(data["date"]),
            recorded_at=parse_iso_datetime(data["recorded_at"]),
        )


@dataclass(frozen=True)
class ChamadaSession:
    """Entidade de domínio: uma chamada (em andamento) de uma turma num dia."""

    class_id: str
    school_id: str
    date: date
    status_by_student: Mapping[str, PresencaStatus] = field(default_factory=dict)
    last_modified: Optional[datetime] = None

    def missing_student_ids(self) -> list[str]:
        return sorted(sid for sid, st in self.status_by_student.items() if st == PresencaStatus.UNSET)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "class_id": self.class_id,
            "school_id": self.school_id,
            "date": self.date.isoformat(),
            "status_by_student": {sid: st.value for sid, st in self.status_by_student.items()},
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChamadaSession":
        last_modified = data.get("last_modified")
        return cls(
            class_id=str(data["class_id"]),
            school_id=str(data["school_id"]),
            date=parse_iso_date(data["date"]),
            status_by_student={
                str(sid): PresencaStatus(st) for sid, st in (data.get("status_by_student") or {}).items()
            },
            last_modified=parse_iso_datetime(last_modified) if last_modified else None,
        )


@dataclass(frozen=True)
class PendingMutation:
    """A mark recorded locally and not yet confirmed by the remote store."""

    mark: AttendanceMark
    attempts: int
    first_queued_at: datetime

    @property
    def key(self) -> MarkKey:
        return self.mark.key

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mark": self.mark.to_dict(),
            "attempts": self.attempts,
            "first_queued_at": self.first_queued_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PendingMutation":
        return cls(
            mark=AttendanceMark.from_dict(data["mark"]),
            attempts=int(data.get("attempts") or 0),
            first_queued_at=parse_iso_datetime(data["first_queued_at"]),
        )


@dataclass(frozen=True)
class DeadLetter:
    """A mutation the remote store permanently rejected. Needs manual resolution."""

    mutation: PendingMutation
    reason: str
    failed_at: datetime

    @property
    def key(self) -> MarkKey:
        return self.mutation.key

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mutation": self.mutation.to_dict(),
            "reason": self.reason,
            "failed_at": self.failed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeadLetter":
        return cls(
            mutation=PendingMutation.from_dict(data["mutation"]),
            reason=str(data.get("reason") or ""),
            failed_at=parse_iso_datetime(data["failed_at"]),
        )
