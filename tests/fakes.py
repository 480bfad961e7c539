"""In-memory stand-ins shared by the test modules."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from chamada_diaria.chamada.model import AttendanceMark, MarkKey
from chamada_diaria.core.enums import AtestadoStatus
from chamada_diaria.core.exceptions import PermanentSyncError
from chamada_diaria.gateway.schemas import (
    AlunoConsultaRow,
    AlunoPresencasRow,
    AtestadoPendenteRow,
    AtestadoResumoRow,
    AtestadoRow,
    FaltosoRow,
    TurmaEstatisticaRow,
)
from chamada_diaria.reference.model import Aluno, Turma


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeGateway:
    """Remote store keyed like the real ``presencas`` table."""

    def __init__(self):
        self.rows: Dict[Tuple[str, str, date], dict] = {}
        self.upsert_calls: List[AttendanceMark] = []
        self.failures: List[Exception] = []
        self.deleted_turmas: set[str] = set()

        self.turmas: List[Turma] = []
        self.alunos: List[Aluno] = []
        self.reference_failures: List[Exception] = []
        self.reference_calls = 0

        self.faltosos: List[FaltosoRow] = []
        self.ranking_calls: List[dict] = []
        self.atestados_resumo: List[AtestadoResumoRow] = []
        self.pendentes: List[AtestadoPendenteRow] = []
        self.estatisticas: List[TurmaEstatisticaRow] = []
        self.presencas: List[AlunoPresencasRow] = []

        self.consulta: Optional[AlunoConsultaRow] = None
        self.datas: List[date] = []
        self.faltas = 0
        self.justificativas = 0

        self.atestados: Dict[str, AtestadoRow] = {}
        self._next_atestado = 1

    # Attendance ----------------------------------------------------------------

    def upsert_attendance(self, mark: AttendanceMark) -> None:
        self.upsert_calls.append(mark)
        if self.failures:
            raise self.failures.pop(0)
        if mark.class_id in self.deleted_turmas:
            raise PermanentSyncError(f"23503: turma {mark.class_id} não existe")
        self.rows[(mark.student_id, mark.class_id, mark.date)] = {
            "aluno_id": mark.student_id,
            "turma_id": mark.class_id,
            "escola_id": mark.school_id,
            "data_chamada": mark.date,
            "presente": mark.present,
            "falta_justificada": mark.justified,
        }

    def row_for(self, key: MarkKey) -> Optional[dict]:
        return self.rows.get((key.student_id, key.class_id, key.date))

    def fetch_reference_data(self, school_id: str):
        self.reference_calls += 1
        if self.reference_failures:
            raise self.reference_failures.pop(0)
        return list(self.turmas), list(self.alunos)

    # Reports -------------------------------------------------------------------

    def ranking_faltosos(self, *, escola_id, min_faltas, nome_filtro="", turma_id=None, page_size=None, page_number=None):
        self.ranking_calls.append(
            {
                "escola_id": escola_id,
                "min_faltas": min_faltas,
                "nome_filtro": nome_filtro,
                "turma_id": turma_id,
                "page_size": page_size,
                "page_number": page_number,
            }
        )
        return list(self.faltosos)

    def relatorio_atestados(self, *, escola_id, data_inicio, data_fim, page_size=None, page_number=None):
        return list(self.atestados_resumo)

    def atestados_pendentes(self, *, escola_id, page_size=None, page_number=None):
        return list(self.pendentes)

    def estatisticas_turmas(self, *, escola_id, data_inicio, data_fim):
        return list(self.estatisticas)

    def presencas_por_aluno(self, *, escola_id):
        return list(self.presencas)

    def find_aluno(self, *, nome, matricula):
        if self.consulta and nome.lower() in self.consulta.nome.lower() and matricula == self.consulta.matricula:
            return self.consulta
        return None

    def datas_chamada(self, *, turma_id):
        return list(self.datas)

    def count_faltas(self, *, aluno_id):
        return self.faltas

    def count_justificativas(self, *, aluno_id):
        return self.justificativas

    # Atestados -----------------------------------------------------------------

    def list_atestados(self, *, escola_id, status, data_inicio=None, data_fim=None):
        return [a for a in self.atestados.values() if a.escola_id == escola_id and a.status == status]

    def get_atestado(self, *, atestado_id):
        return self.atestados.get(atestado_id)

    def save_atestado(self, *, escola_id, aluno_id, data_inicio, data_fim, descricao, status, atestado_id=None):
        if not atestado_id:
            atestado_id = f"at-{self._next_atestado}"
            self._next_atestado += 1
        self.atestados[atestado_id] = AtestadoRow(
            id=atestado_id,
            aluno_id=aluno_id,
            escola_id=escola_id,
            data_inicio=data_inicio,
            data_fim=data_fim,
            descricao=descricao,
            status=status,
        )
        return atestado_id

    def update_atestado_status(self, *, atestado_id, status: AtestadoStatus):
        current = self.atestados.get(atestado_id)
        if current is None:
            return False
        self.atestados[atestado_id] = current.model_copy(update={"status": status})
        return True

    def delete_atestado(self, *, atestado_id):
        return self.atestados.pop(atestado_id, None) is not None


def make_mark(
    student_id: str = "s1",
    class_id: str = "c1",
    day: date = date(2024, 5, 1),
    *,
    present: bool = False,
    justified: bool = False,
    school_id: str = "e1",
    recorded_at: datetime = datetime(2024, 5, 1, 8, 0),
) -> AttendanceMark:
    return AttendanceMark(
        student_id=student_id,
        class_id=class_id,
        school_id=school_id,
        present=present,
        justified=justified,
        date=day,
        recorded_at=recorded_at,
    )
