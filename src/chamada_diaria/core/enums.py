from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Papel do usuário usado para controle de acesso."""

    ADMIN = "admin"
    PROFESSOR = "professor"
    ALUNO = "aluno"


class PresencaStatus(str, Enum):
    """Status de um aluno dentro de uma chamada em andamento."""

    PRESENTE = "presente"
    FALTA = "falta"
    ATESTADO = "atestado"
    UNSET = "unset"


class AtestadoStatus(str, Enum):
    """Fluxo de aprovação de atestados."""

    PENDENTE = "pendente"
    APROVADO = "aprovado"
    REJEITADO = "rejeitado"
