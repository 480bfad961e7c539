from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Optional

from flask import jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import (
    AuthorizationError,
    DomainError,
    IncompleteSessionError,
    NotificationError,
    SchemaError,
    SyncError,
    TransientSyncError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def error_response(e: DomainError):
    if isinstance(e, IncompleteSessionError):
        return jsonify(error=str(e), faltando=e.missing_student_ids), 422
    if isinstance(e, ValidationError):
        return jsonify(error=str(e)), 400
    if isinstance(e, AuthorizationError):
        return jsonify(error=str(e)), 403
    if isinstance(e, TransientSyncError):
        return jsonify(error=f"Servidor indisponível: {e}"), 503
    if isinstance(e, (SchemaError, NotificationError, SyncError)):
        return jsonify(error=str(e)), 502
    return jsonify(error=str(e)), 400


def json_errors(view):
    """Map domain errors of a JSON view to status codes. Anything else is a 500."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except DomainError as e:
            return error_response(e)
        except Exception:
            logger.exception("Unhandled error in %s", request.path)
            return jsonify(error="Erro interno do servidor"), 500

    return wrapper


def current_role() -> Role:
    try:
        return Role(session.get("role"))
    except ValueError:
        raise AuthorizationError("Perfil de usuário inválido")


def current_escola_id() -> Optional[str]:
    escola_id = session.get("escola_id")
    return str(escola_id) if escola_id else None


def require_escola_id() -> str:
    escola_id = current_escola_id()
    if not escola_id:
        raise ValidationError("Usuário sem escola vinculada")
    return escola_id


def json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def page_arg() -> int:
    raw = request.args.get("page") or "1"
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("Página inválida")
