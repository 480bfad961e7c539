from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence

from ..common.validators import require_date_range, require_non_empty, require_role
from ..core.enums import AtestadoStatus, Role
from ..core.exceptions import AuthorizationError, ValidationError
from ..gateway.repository import RemoteGateway
from ..gateway.schemas import AtestadoRow

logger = logging.getLogger(__name__)


class AtestadoService:
    def __init__(self, gateway: RemoteGateway):
        self._gateway = gateway

    def list(
        self,
        *,
        current_role: Role,
        escola_id: str,
        status: AtestadoStatus = AtestadoStatus.PENDENTE,
        data_inicio: Optional[date] = None,
        data_fim: Optional[date] = None,
    ) -> Sequence[AtestadoRow]:
        require_role(current_role, Role.ADMIN, Role.PROFESSOR)
        require_date_range(data_inicio, data_fim)
        return self._gateway.list_atestados(
            escola_id=escola_id, status=status, data_inicio=data_inicio, data_fim=data_fim
        )

    def save(
        self,
        *,
        current_role: Role,
        escola_id: str,
        aluno_id: str,
        data_inicio: date,
        data_fim: date,
        descricao: str,
        atestado_id: Optional[str] = None,
    ) -> str:
        """Create a new (pending) atestado, or edit an existing one keeping its status."""

        require_role(current_role, Role.ADMIN, Role.PROFESSOR)
        aluno_id = require_non_empty(aluno_id, "Aluno")
        descricao = require_non_empty(descricao, "Descrição")
        require_date_range(data_inicio, data_fim)

        status = AtestadoStatus.PENDENTE
        if atestado_id:
            existing = self._gateway.get_atestado(atestado_id=atestado_id)
            if existing is None:
                raise ValidationError("Atestado não encontrado")
            status = existing.status

        return self._gateway.save_atestado(
            escola_id=escola_id,
            aluno_id=aluno_id,
            data_inicio=data_inicio,
            data_fim=data_fim,
            descricao=descricao,
            status=status,
            atestado_id=atestado_id,
        )

    def _decide(self, *, current_role: Role, atestado_id: str, status: AtestadoStatus) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Apenas administradores podem aprovar ou rejeitar atestados")

        atestado = self._gateway.get_atestado(atestado_id=atestado_id)
        if atestado is None:
            raise ValidationError("Atestado não encontrado")
        if atestado.status != AtestadoStatus.PENDENTE:
            raise ValidationError("Este atestado já foi analisado")

        if not self._gateway.update_atestado_status(atestado_id=atestado_id, status=status):
            raise ValidationError("Não foi possível atualizar o atestado")
        logger.info("Atestado %s -> %s", atestado_id, status.value)

    def approve(self, *, current_role: Role, atestado_id: str) -> None:
        self._decide(current_role=current_role, atestado_id=atestado_id, status=AtestadoStatus.APROVADO)

    def reject(self, *, current_role: Role, atestado_id: str) -> None:
        self._decide(current_role=current_role, atestado_id=atestado_id, status=AtestadoStatus.REJEITADO)

    def delete(self, *, current_role: Role, atestado_id: str) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Apenas administradores podem excluir atestados")
        if not self._gateway.delete_atestado(atestado_id=atestado_id):
            raise ValidationError("Atestado não encontrado")
