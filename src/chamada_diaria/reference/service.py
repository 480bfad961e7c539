from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_REFERENCE_CACHE_TTL_HOURS
from ..core.exceptions import TransientSyncError, ValidationError
from ..gateway.repository import RemoteGateway
from ..offline.outbox import OfflineOutbox
from .model import Aluno, ReferenceSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadSummary:
    turmas_count: int
    alunos_count: int


class ReferenceDataService:
    """Keeps the local copy of turmas and alunos used to build roll-calls offline."""

    def __init__(
        self,
        outbox: OfflineOutbox,
        gateway: RemoteGateway,
        *,
        ttl_hours: float = DEFAULT_REFERENCE_CACHE_TTL_HOURS,
        clock: Callable[[], datetime] = now_local,
    ):
        self._outbox = outbox
        self._gateway = gateway
        self._ttl = timedelta(hours=float(ttl_hours))
        self._clock = clock

    def current(self) -> Optional[ReferenceSnapshot]:
        data = self._outbox.load_reference_cache()
        return ReferenceSnapshot.from_dict(data) if data else None

    def is_stale(self, snapshot: ReferenceSnapshot) -> bool:
        return self._clock() - snapshot.timestamp > self._ttl

    def download(self, school_id: str) -> DownloadSummary:
        """Fetch reference data for the school and replace the local cache."""

        if not school_id:
            raise ValidationError("Escola não identificada")

        turmas, alunos = self._gateway.fetch_reference_data(school_id)
        snapshot = ReferenceSnapshot(school_id=str(school_id), turmas=turmas, alunos=alunos, timestamp=self._clock())
        self._outbox.save_reference_cache(snapshot.to_dict())
        logger.info("Reference data cached for escola=%s (%d turmas, %d alunos)", school_id, len(turmas), len(alunos))
        return DownloadSummary(turmas_count=len(turmas), alunos_count=len(alunos))

    def ensure_fresh(self, school_id: Optional[str], *, online: bool) -> ReferenceSnapshot:
        """Staleness check that must run before a roll-call is built.

        A stale cache is refreshed when online. If that refresh fails for a
        transient reason the stale copy is still used.
        """

        snapshot = self.current()
        if snapshot is not None and school_id and snapshot.school_id != str(school_id):
            snapshot = None

        if snapshot is not None and not self.is_stale(snapshot):
            return snapshot

        if online and school_id:
            try:
                self.download(school_id)
                refreshed = self.current()
                if refreshed is not None:
                    return refreshed
            except TransientSyncError as e:
                if snapshot is None:
                    raise ValidationError("Sem conexão e sem dados da escola baixados") from e
                logger.warning("Using stale reference data for escola=%s: %s", snapshot.school_id, e)
                return snapshot

        if snapshot is None:
            raise ValidationError("Dados da escola não baixados. Conecte-se e baixe os dados primeiro.")

        logger.warning("Reference data for escola=%s is stale (offline)", snapshot.school_id)
        return snapshot

    def roster(self, snapshot: ReferenceSnapshot, turma_id: str) -> list[Aluno]:
        if snapshot.turma(turma_id) is None:
            raise ValidationError("Turma não encontrada nos dados da escola")
        return snapshot.roster(turma_id)
