from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence, Tuple

from ..chamada.model import AttendanceMark
from ..core.enums import AtestadoStatus
from ..reference.model import Aluno, Turma
from .schemas import (
    AlunoConsultaRow,
    AlunoPresencasRow,
    AtestadoPendenteRow,
    AtestadoResumoRow,
    AtestadoRow,
    FaltosoRow,
    TurmaEstatisticaRow,
)


class RemoteGateway(Protocol):
    """Boundary to the hosted backend (tables + RPC).

    Every method may raise ``TransientSyncError`` (retry later),
    ``PermanentSyncError`` (rejected) or ``SchemaError`` (unexpected shape).
    """

    def upsert_attendance(self, mark: AttendanceMark) -> None:
        """Idempotent on (student_id, class_id, date)."""

        raise NotImplementedError

    def fetch_reference_data(self, school_id: str) -> Tuple[Sequence[Turma], Sequence[Aluno]]:
        raise NotImplementedError

    # Reports (server-side aggregation) --------------------------------------

    def ranking_faltosos(
        self,
        *,
        escola_id: str,
        min_faltas: int,
        nome_filtro: str = "",
        turma_id: Optional[str] = None,
        page_size: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> Sequence[FaltosoRow]:
        raise NotImplementedError

    def relatorio_atestados(
        self,
        *,
        escola_id: str,
        data_inicio: Optional[date],
        data_fim: Optional[date],
        page_size: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> Sequence[AtestadoResumoRow]:
        raise NotImplementedError

    def atestados_pendentes(
        self, *, escola_id: str, page_size: Optional[int] = None, page_number: Optional[int] = None
    ) -> Sequence[AtestadoPendenteRow]:
        raise NotImplementedError

    def estatisticas_turmas(
        self, *, escola_id: str, data_inicio: Optional[date], data_fim: Optional[date]
    ) -> Sequence[TurmaEstatisticaRow]:
        raise NotImplementedError

    def presencas_por_aluno(self, *, escola_id: str) -> Sequence[AlunoPresencasRow]:
        raise NotImplementedError

    # Student absence query ----------------------------------------------------

    def find_aluno(self, *, nome: str, matricula: str) -> Optional[AlunoConsultaRow]:
        raise NotImplementedError

    def datas_chamada(self, *, turma_id: str) -> Sequence[date]:
        raise NotImplementedError

    def count_faltas(self, *, aluno_id: str) -> int:
        raise NotImplementedError

    def count_justificativas(self, *, aluno_id: str) -> int:
        raise NotImplementedError

    # Atestados ----------------------------------------------------------------

    def list_atestados(
        self,
        *,
        escola_id: str,
        status: AtestadoStatus,
        data_inicio: Optional[date] = None,
        data_fim: Optional[date] = None,
    ) -> Sequence[AtestadoRow]:
        raise NotImplementedError

    def get_atestado(self, *, atestado_id: str) -> Optional[AtestadoRow]:
        raise NotImplementedError

    def save_atestado(
        self,
        *,
        escola_id: str,
        aluno_id: str,
        data_inicio: date,
        data_fim: date,
        descricao: str,
        status: AtestadoStatus,
        atestado_id: Optional[str] = None,
    ) -> str:
        """Create or update an atestado. Returns its id."""

        raise NotImplementedError

    def update_atestado_status(self, *, atestado_id: str, status: AtestadoStatus) -> bool:
        raise NotImplementedError

    def delete_atestado(self, *, atestado_id: str) -> bool:
        raise NotImplementedError
