from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, List, Optional, Sequence

from ..common.validators import require_role
from ..core.enums import PresencaStatus, Role
from ..core.exceptions import ValidationError
from ..offline.outbox import OfflineOutbox
from ..reference.model import Aluno
from ..reference.service import ReferenceDataService
from .model import AttendanceMark, ChamadaSession
from .session_builder import SessionBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChamadaView:
    session: ChamadaSession
    alunos: Sequence[Aluno]

    def to_dict(self) -> dict:
        data = self.session.to_dict()
        data["alunos"] = [
            {
                "aluno_id": a.aluno_id,
                "nome": a.nome,
                "matricula": a.matricula,
                "status": self.session.status_by_student.get(a.aluno_id, PresencaStatus.UNSET).value,
            }
            for a in self.alunos
        ]
        data["faltando"] = self.session.missing_student_ids()
        return data


class ChamadaService:
    """Roll-call workflow on top of the local outbox. Works offline."""

    def __init__(
        self,
        outbox: OfflineOutbox,
        reference: ReferenceDataService,
        builder: SessionBuilder,
        *,
        is_online: Callable[[], Optional[bool]] = lambda: None,
        request_sync: Callable[[], Any] = lambda: None,
    ):
        self._outbox = outbox
        self._reference = reference
        self._builder = builder
        self._is_online = is_online
        self._request_sync = request_sync

    def start(self, *, current_role: Role, school_id: str, class_id: str, day: date) -> ChamadaView:
        require_role(current_role, Role.ADMIN, Role.PROFESSOR)

        # Reference data must be checked (and refreshed) before building.
        snapshot = self._reference.ensure_fresh(school_id, online=self._is_online() is not False)
        alunos = self._reference.roster(snapshot, class_id)

        session = self._builder.start_session(
            class_id,
            day,
            school_id=snapshot.school_id,
            enrolled=[a.aluno_id for a in alunos],
            resume=self._outbox.load_last_session(class_id),
        )
        self._outbox.save_session(session)
        return ChamadaView(session=session, alunos=alunos)

    def _open_session(self, class_id: str, day: date) -> ChamadaSession:
        session = self._outbox.load_last_session(class_id)
        if session is None or session.date != day:
            raise ValidationError("Nenhuma chamada em andamento para esta turma e data")
        return session

    def mark(
        self,
        *,
        current_role: Role,
        class_id: str,
        day: date,
        student_id: str,
        status: PresencaStatus,
    ) -> ChamadaSession:
        require_role(current_role, Role.ADMIN, Role.PROFESSOR)
        if status == PresencaStatus.UNSET:
            raise ValidationError("Status inválido")

        session = self._builder.set_status(self._open_session(class_id, day), student_id, status)
        self._outbox.save_session(session)
        return session

    def submit(self, *, current_role: Role, class_id: str, day: date) -> List[AttendanceMark]:
        """Queue the whole roll-call and try to sync it."""

        require_role(current_role, Role.ADMIN, Role.PROFESSOR)
        marks = self._builder.submit(self._open_session(class_id, day))
        for mark in marks:
            self._outbox.enqueue(mark)
        self._outbox.clear_session(class_id)
        logger.info("Chamada turma=%s data=%s queued (%d marks)", class_id, day.isoformat(), len(marks))

        self._request_sync()
        return marks

    def discard(self, *, current_role: Role, class_id: str) -> None:
        require_role(current_role, Role.ADMIN, Role.PROFESSOR)
        self._outbox.clear_session(class_id)
