from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Optional, Sequence, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from ..chamada.model import AttendanceMark
from ..core.enums import AtestadoStatus
from ..core.exceptions import PermanentSyncError, SchemaError, SyncError, TransientSyncError
from ..reference.model import Aluno, Turma
from .repository import RemoteGateway
from .schemas import (
    AlunoConsultaRow,
    AlunoPresencasRow,
    AlunoRow,
    AtestadoPendenteRow,
    AtestadoResumoRow,
    AtestadoRow,
    DataChamadaRow,
    FaltosoRow,
    TurmaEstatisticaRow,
    TurmaRow,
    parse_row,
    parse_rows,
)

logger = logging.getLogger(__name__)

PRESENCAS_CONFLICT_COLUMNS = "aluno_id,turma_id,data_chamada"

# Postgres classes 22 (data exception) and 23 (integrity violation) mean the
# row itself is wrong; retrying cannot help.
PERMANENT_CODE_PREFIXES = ("22", "23")
PERMANENT_CODES = {"42703", "42P01", "PGRST102", "PGRST204"}


def classify_error(exc: BaseException) -> Optional[SyncError]:
    """Map a client-side exception to the sync error taxonomy.

    Returns None for exceptions that are not remote failures (bugs).
    """

    if isinstance(exc, APIError):
        code = str(getattr(exc, "code", "") or "")
        message = str(getattr(exc, "message", "") or exc)
        if code.startswith(PERMANENT_CODE_PREFIXES) or code in PERMANENT_CODES:
            return PermanentSyncError(f"{code}: {message}")
        return TransientSyncError(f"{code or 'api'}: {message}")

    if isinstance(exc, (httpx.TransportError, httpx.HTTPStatusError, ConnectionError, TimeoutError)):
        return TransientSyncError(str(exc) or exc.__class__.__name__)

    return None


def connect(url: str, key: str) -> Client:
    if not url or not key:
        raise ValueError("SUPABASE_URL e SUPABASE_KEY são obrigatórios")
    return create_client(url, key)


class SupabaseGateway(RemoteGateway):
    def __init__(self, client: Client):
        self._client = client

    @staticmethod
    def _execute(operation: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except Exception as e:
            mapped = classify_error(e)
            if mapped is None:
                raise
            logger.debug("Supabase %s failed: %s", operation, mapped)
            raise mapped from e

    def _rpc(self, name: str, params: dict) -> Any:
        return self._execute(name, lambda: self._client.rpc(name, params).execute().data)

    def upsert_attendance(self, mark: AttendanceMark) -> None:
        row = {
            "aluno_id": mark.student_id,
            "turma_id": mark.class_id,
            "escola_id": mark.school_id,
            "data_chamada": mark.date.isoformat(),
            "presente": mark.present,
            "falta_justificada": mark.justified,
        }
        self._execute(
            "upsert presencas",
            lambda: self._client.table("presencas")
            .upsert(row, on_conflict=PRESENCAS_CONFLICT_COLUMNS)
            .execute(),
        )

    def fetch_reference_data(self, school_id: str) -> Tuple[Sequence[Turma], Sequence[Aluno]]:
        turma_data = self._execute(
            "select turmas",
            lambda: self._client.table("turmas")
            .select("id, nome, numero_sala")
            .eq("escola_id", school_id)
            .order("nome")
            .execute()
            .data,
        )
        turmas = [Turma(turma_id=t.id, nome=t.nome, numero_sala=t.numero_sala) for t in parse_rows(TurmaRow, turma_data)]

        alunos: list[Aluno] = []
        if turmas:
            aluno_data = self._execute(
                "select alunos",
                lambda: self._client.table("alunos")
                .select("id, nome, matricula, turma_id")
                .in_("turma_id", [t.turma_id for t in turmas])
                .execute()
                .data,
            )
            alunos = [
                Aluno(aluno_id=a.id, nome=a.nome, matricula=a.matricula, turma_id=a.turma_id)
                for a in parse_rows(AlunoRow, aluno_data)
            ]
        return turmas, alunos

    @staticmethod
    def _with_paging(params: dict, page_size: Optional[int], page_number: Optional[int]) -> dict:
        # Without paging params the RPCs return every row (used for export).
        if page_size is not None and page_number is not None:
            params["_page_size"] = int(page_size)
            params["_page_number"] = int(page_number)
        return params

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
        params = {
            "_escola_id": escola_id,
            "_min_faltas": int(min_faltas),
            "_nome_filtro": nome_filtro or "",
            "_turma_id_filtro": turma_id,
        }
        data = self._rpc("get_ranking_faltosos", self._with_paging(params, page_size, page_number))
        return parse_rows(FaltosoRow, data)

    def relatorio_atestados(
        self,
        *,
        escola_id: str,
        data_inicio: Optional[date],
        data_fim: Optional[date],
        page_size: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> Sequence[AtestadoResumoRow]:
        params = {
            "_escola_id": escola_id,
            "_data_inicio": data_inicio.isoformat() if data_inicio else None,
            "_data_fim": data_fim.isoformat() if data_fim else None,
        }
        data = self._rpc("get_relatorio_atestados", self._with_paging(params, page_size, page_number))
        return parse_rows(AtestadoResumoRow, data)

    def atestados_pendentes(
        self, *, escola_id: str, page_size: Optional[int] = None, page_number: Optional[int] = None
    ) -> Sequence[AtestadoPendenteRow]:
        params = self._with_paging({"_escola_id": escola_id}, page_size, page_number)
        return parse_rows(AtestadoPendenteRow, self._rpc("get_alunos_com_atestados_pendentes", params))

    def estatisticas_turmas(
        self, *, escola_id: str, data_inicio: Optional[date], data_fim: Optional[date]
    ) -> Sequence[TurmaEstatisticaRow]:
        data = self._rpc(
            "get_estatisticas_turmas",
            {
                "_escola_id": escola_id,
                "_data_inicio": data_inicio.isoformat() if data_inicio else None,
                "_data_fim": data_fim.isoformat() if data_fim else None,
            },
        )
        return parse_rows(TurmaEstatisticaRow, data)

    def presencas_por_aluno(self, *, escola_id: str) -> Sequence[AlunoPresencasRow]:
        data = self._execute(
            "select alunos/presencas",
            lambda: self._client.table("alunos")
            .select("id, nome, turmas(nome), presencas(presente)")
            .eq("escola_id", escola_id)
            .execute()
            .data,
        )
        rows = []
        for r in data or []:
            if not isinstance(r, dict):
                raise SchemaError("Esperava um objeto por aluno")
            rows.append(
                {
                    "id": r.get("id"),
                    "nome": r.get("nome"),
                    "nome_turma": (r.get("turmas") or {}).get("nome"),
                    "presencas": [p.get("presente") for p in r.get("presencas") or []],
                }
            )
        return parse_rows(AlunoPresencasRow, rows)

    def find_aluno(self, *, nome: str, matricula: str) -> Optional[AlunoConsultaRow]:
        data = self._execute(
            "select aluno",
            lambda: self._client.table("alunos")
            .select("id, nome, matricula, turma_id, turmas(nome)")
            .ilike("nome", f"%{nome}%")
            .eq("matricula", matricula)
            .limit(1)
            .execute()
            .data,
        )
        if not data:
            return None
        r = data[0]
        if not isinstance(r, dict):
            raise SchemaError("Esperava um objeto de aluno")
        return parse_row(
            AlunoConsultaRow,
            {
                "id": r.get("id"),
                "nome": r.get("nome"),
                "matricula": r.get("matricula"),
                "turma_id": r.get("turma_id"),
                "nome_turma": (r.get("turmas") or {}).get("nome"),
            },
        )

    def datas_chamada(self, *, turma_id: str) -> Sequence[date]:
        data = self._execute(
            "select datas",
            lambda: self._client.table("presencas").select("data_chamada").eq("turma_id", turma_id).execute().data,
        )
        return [r.data_chamada for r in parse_rows(DataChamadaRow, data)]

    def _count(self, table: str, **filters: Any) -> int:
        def run():
            query = self._client.table(table).select("id", count="exact", head=True)
            for column, value in filters.items():
                query = query.eq(column, value)
            return query.execute().count

        return int(self._execute(f"count {table}", run) or 0)

    def count_faltas(self, *, aluno_id: str) -> int:
        return self._count("presencas", aluno_id=aluno_id, presente=False)

    def count_justificativas(self, *, aluno_id: str) -> int:
        return self._count("justificativa_faltas", aluno_id=aluno_id)

    def _atestado_from(self, r: Any) -> AtestadoRow:
        if not isinstance(r, dict):
            raise SchemaError("Esperava um objeto de atestado")
        row = dict(r)
        row["nome_aluno"] = (r.get("alunos") or {}).get("nome")
        row.pop("alunos", None)
        return parse_row(AtestadoRow, row)

    def list_atestados(
        self,
        *,
        escola_id: str,
        status: AtestadoStatus,
        data_inicio: Optional[date] = None,
        data_fim: Optional[date] = None,
    ) -> Sequence[AtestadoRow]:
        def run():
            query = (
                self._client.table("atestados")
                .select("id, aluno_id, escola_id, data_inicio, data_fim, descricao, status, alunos(nome)")
                .eq("escola_id", escola_id)
                .eq("status", status.value)
            )
            if data_inicio:
                query = query.gte("data_inicio", data_inicio.isoformat())
            if data_fim:
                query = query.lte("data_fim", data_fim.isoformat())
            return query.order("created_at", desc=True).execute().data

        return [self._atestado_from(r) for r in self._execute("select atestados", run) or []]

    def get_atestado(self, *, atestado_id: str) -> Optional[AtestadoRow]:
        data = self._execute(
            "select atestado",
            lambda: self._client.table("atestados")
            .select("id, aluno_id, escola_id, data_inicio, data_fim, descricao, status, alunos(nome)")
            .eq("id", atestado_id)
            .limit(1)
            .execute()
            .data,
        )
        return self._atestado_from(data[0]) if data else None

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
        row: dict[str, Any] = {
            "aluno_id": aluno_id,
            "escola_id": escola_id,
            "data_inicio": data_inicio.isoformat(),
            "data_fim": data_fim.isoformat(),
            "descricao": descricao,
            "status": status.value,
        }
        if atestado_id:
            row["id"] = atestado_id
        data = self._execute("upsert atestado", lambda: self._client.table("atestados").upsert(row).execute().data)
        if not data or not isinstance(data[0], dict) or "id" not in data[0]:
            raise SchemaError("Upsert de atestado não retornou o id")
        return str(data[0]["id"])

    def update_atestado_status(self, *, atestado_id: str, status: AtestadoStatus) -> bool:
        data = self._execute(
            "update atestado",
            lambda: self._client.table("atestados").update({"status": status.value}).eq("id", atestado_id).execute().data,
        )
        return bool(data)

    def delete_atestado(self, *, atestado_id: str) -> bool:
        data = self._execute(
            "delete atestado",
            lambda: self._client.table("atestados").delete().eq("id", atestado_id).execute().data,
        )
        return bool(data)
