from __future__ import annotations

import csv
import io
import math
from datetime import date
from typing import List, Optional, Sequence

from ..common.validators import require_date_range, require_non_empty, require_role
from ..core.constants import ALERT_ABSENCE_RATE, ALERT_MIN_CLASSES, MIN_FALTAS, REPORT_PAGE_SIZE
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..gateway.repository import RemoteGateway
from ..gateway.schemas import AtestadoPendenteRow, AtestadoResumoRow, FaltosoRow, TurmaEstatisticaRow
from .model import AlertaFaltas, ConsultaFaltas, Page

FALTOSOS_CSV_COLUMNS = ["Nome do Aluno", "Matrícula", "Turma", "Quantidade de Faltas"]


def percent(part: int, total: int) -> int:
    """Percentage rounded half up (2.5 -> 3)."""

    return int(math.floor(part / total * 100 + 0.5))


class ReportService:
    """Read-only reports. Aggregation runs server-side; this layer pages,
    filters input and shapes the results."""

    def __init__(self, gateway: RemoteGateway, *, page_size: int = REPORT_PAGE_SIZE, min_faltas: int = MIN_FALTAS):
        self._gateway = gateway
        self._page_size = int(page_size)
        self._min_faltas = int(min_faltas)

    @staticmethod
    def _check_page(page: int) -> int:
        if int(page) < 1:
            raise ValidationError("Página inválida")
        return int(page)

    @staticmethod
    def _total_records(rows: Sequence) -> int:
        return int(rows[0].total_records) if rows else 0

    def ranking_faltosos(
        self,
        *,
        current_role: Role,
        escola_id: str,
        nome_filtro: str = "",
        turma_id: Optional[str] = None,
        page: int = 1,
    ) -> Page[FaltosoRow]:
        require_role(current_role, Role.ADMIN, Role.PROFESSOR)
        page = self._check_page(page)
        rows = self._gateway.ranking_faltosos(
            escola_id=escola_id,
            min_faltas=self._min_faltas,
            nome_filtro=(nome_filtro or "").strip(),
            turma_id=turma_id or None,
            page_size=self._page_size,
            page_number=page,
        )
        return Page(items=rows, page=page, page_size=self._page_size, total_records=self._total_records(rows))

    def export_faltosos_csv(
        self,
        *,
        current_role: Role,
        escola_id: str,
        nome_filtro: str = "",
        turma_id: Optional[str] = None,
    ) -> bytes:
        """Every faltoso (no paging) as a UTF-8 CSV with BOM, ready for Excel."""

        require_role(current_role, Role.ADMIN, Role.PROFESSOR)
        rows = self._gateway.ranking_faltosos(
            escola_id=escola_id,
            min_faltas=self._min_faltas,
            nome_filtro=(nome_filtro or "").strip(),
            turma_id=turma_id or None,
        )
        if not rows:
            raise ValidationError("Nenhum dado retornado para exportação")

        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=FALTOSOS_CSV_COLUMNS)
        writer.writeheader()
        for r in rows:
            writer.writerow(
                {
                    "Nome do Aluno": r.nome_aluno,
                    "Matrícula": r.matricula or "",
                    "Turma": r.nome_turma or "",
                    "Quantidade de Faltas": r.total_faltas,
                }
            )
        return out.getvalue().encode("utf-8-sig")

    def relatorio_atestados(
        self,
        *,
        current_role: Role,
        escola_id: str,
        data_inicio: Optional[date] = None,
        data_fim: Optional[date] = None,
        page: int = 1,
    ) -> Page[AtestadoResumoRow]:
        require_role(current_role, Role.ADMIN, Role.PROFESSOR)
        require_date_range(data_inicio, data_fim)
        page = self._check_page(page)
        rows = self._gateway.relatorio_atestados(
            escola_id=escola_id,
            data_inicio=data_inicio,
            data_fim=data_fim,
            page_size=self._page_size,
            page_number=page,
        )
        return Page(items=rows, page=page, page_size=self._page_size, total_records=self._total_records(rows))

    def atestados_pendentes(self, *, current_role: Role, escola_id: str, page: int = 1) -> Page[AtestadoPendenteRow]:
        require_role(current_role, Role.ADMIN, Role.PROFESSOR)
        page = self._check_page(page)
        rows = self._gateway.atestados_pendentes(escola_id=escola_id, page_size=self._page_size, page_number=page)
        return Page(items=rows, page=page, page_size=self._page_size, total_records=self._total_records(rows))

    def taxa_presenca(
        self,
        *,
        current_role: Role,
        escola_id: str,
        data_inicio: Optional[date] = None,
        data_fim: Optional[date] = None,
    ) -> Sequence[TurmaEstatisticaRow]:
        require_role(current_role, Role.ADMIN, Role.PROFESSOR)
        require_date_range(data_inicio, data_fim)
        return self._gateway.estatisticas_turmas(escola_id=escola_id, data_inicio=data_inicio, data_fim=data_fim)

    def alertas(self, *, current_role: Role, escola_id: str) -> List[AlertaFaltas]:
        """Students whose absence rate needs attention.

        Only students with more than ALERT_MIN_CLASSES recorded classes are
        considered; the alert fires at ALERT_ABSENCE_RATE percent or more.
        """

        require_role(current_role, Role.ADMIN, Role.PROFESSOR)
        alertas = []
        for aluno in self._gateway.presencas_por_aluno(escola_id=escola_id):
            total = len(aluno.presencas)
            if total <= ALERT_MIN_CLASSES:
                continue
            faltas = sum(1 for presente in aluno.presencas if not presente)
            taxa = percent(faltas, total)
            if taxa >= ALERT_ABSENCE_RATE:
                alertas.append(
                    AlertaFaltas(
                        aluno_id=aluno.id,
                        nome_aluno=aluno.nome,
                        nome_turma=aluno.nome_turma,
                        total_aulas=total,
                        total_faltas=faltas,
                        taxa_faltas=taxa,
                    )
                )
        return sorted(alertas, key=lambda a: a.nome_aluno.lower())

    def consultar_faltas(self, *, nome: str, matricula: str) -> ConsultaFaltas:
        """Public lookup by name fragment and enrollment number."""

        nome = require_non_empty(nome, "Nome")
        matricula = require_non_empty(matricula, "Matrícula")

        aluno = self._gateway.find_aluno(nome=nome, matricula=matricula)
        if aluno is None:
            raise ValidationError("Aluno não encontrado. Verifique o nome e a matrícula.")

        total = len(set(self._gateway.datas_chamada(turma_id=aluno.turma_id)))
        faltas = self._gateway.count_faltas(aluno_id=aluno.id)
        justificadas = self._gateway.count_justificativas(aluno_id=aluno.id)
        frequencia = percent(total - faltas, total) if total > 0 else 100

        return ConsultaFaltas(
            aluno_id=aluno.id,
            nome=aluno.nome,
            matricula=aluno.matricula,
            nome_turma=aluno.nome_turma,
            total_aulas=total,
            total_faltas=faltas,
            faltas_justificadas=justificadas,
            frequencia=frequencia,
        )
