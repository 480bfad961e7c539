from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List, Optional

from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_FUTURE_GRACE_DAYS
from ..core.enums import PresencaStatus
from ..core.exceptions import IncompleteSessionError, ValidationError
from .model import AttendanceMark, ChamadaSession

# status -> (present, justified)
_MARK_FLAGS = {
    PresencaStatus.PRESENTE: (True, False),
    PresencaStatus.FALTA: (False, False),
    PresencaStatus.ATESTADO: (False, True),
}


class SessionBuilder:
    """Builds roll-call sessions from user input. Never touches storage."""

    def __init__(
        self,
        *,
        future_grace_days: int = DEFAULT_FUTURE_GRACE_DAYS,
        clock: Callable[[], datetime] = now_local,
    ):
        if future_grace_days < 0:
            raise ValueError("future_grace_days must be >= 0")
        self._future_grace_days = int(future_grace_days)
        self._clock = clock

    def start_session(
        self,
        class_id: str,
        day: date,
        *,
        school_id: str,
        enrolled: Iterable[str],
        resume: Optional[ChamadaSession] = None,
    ) -> ChamadaSession:
        """Create a session with everyone ``unset``, or resume a stored one.

        A stored session is resumed only when it is for the same class and
        day. Its marks are kept for students still enrolled; students added
        to the roster since then start ``unset``.
        """

        limit = self._clock().date() + timedelta(days=self._future_grace_days)
        if day > limit:
            raise ValidationError(f"Não é possível fazer chamada para {day.isoformat()} (data futura)")

        student_ids = [str(s) for s in enrolled]
        if not student_ids:
            raise ValidationError("A turma não possui alunos")

        previous = {}
        last_modified = None
        if resume is not None and resume.class_id == class_id and resume.date == day:
            previous = dict(resume.status_by_student)
            last_modified = resume.last_modified

        return ChamadaSession(
            class_id=class_id,
            school_id=school_id,
            date=day,
            status_by_student={sid: previous.get(sid, PresencaStatus.UNSET) for sid in student_ids},
            last_modified=last_modified or self._clock(),
        )

    def set_status(self, session: ChamadaSession, student_id: str, status: PresencaStatus) -> ChamadaSession:
        if student_id not in session.status_by_student:
            raise ValidationError(f"Aluno {student_id} não pertence à turma")

        statuses = dict(session.status_by_student)
        statuses[student_id] = PresencaStatus(status)
        return ChamadaSession(
            class_id=session.class_id,
            school_id=session.school_id,
            date=session.date,
            status_by_student=statuses,
            last_modified=self._clock(),
        )

    def submit(self, session: ChamadaSession) -> List[AttendanceMark]:
        """Materialize the session. Every student must be marked."""

        missing = session.missing_student_ids()
        if missing:
            raise IncompleteSessionError(missing)

        recorded_at = self._clock()
        marks = []
        for student_id in sorted(session.status_by_student):
            present, justified = _MARK_FLAGS[session.status_by_student[student_id]]
            marks.append(
                AttendanceMark(
                    student_id=student_id,
                    class_id=session.class_id,
                    school_id=session.school_id,
                    present=present,
                    justified=justified,
                    date=session.date,
                    recorded_at=recorded_at,
                )
            )
        return marks
