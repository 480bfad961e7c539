from __future__ import annotations

from functools import wraps

from flask import Flask, jsonify, request, session

from ..common.datetime_utils import parse_iso_date, parse_optional_date
from ..common.http import current_role, json_body, json_errors, require_escola_id
from ..container import Container
from ..core.enums import AtestadoStatus
from ..core.exceptions import ValidationError


def register(app: Flask, container: Container) -> None:
    atestados = container.atestado_service

    def login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return jsonify(error="Faça login para continuar"), 401
            return view(*args, **kwargs)

        return wrapper

    @app.route("/api/atestados", methods=["GET"], endpoint="atestados_list")
    @login_required
    @json_errors
    def atestados_list():
        raw_status = request.args.get("status") or AtestadoStatus.PENDENTE.value
        try:
            status = AtestadoStatus(raw_status)
        except ValueError:
            raise ValidationError(f"Status inválido: {raw_status!r}")

        rows = atestados.list(
            current_role=current_role(),
            escola_id=require_escola_id(),
            status=status,
            data_inicio=parse_optional_date(request.args.get("inicio")),
            data_fim=parse_optional_date(request.args.get("fim")),
        )
        return jsonify([r.model_dump(mode="json") for r in rows])

    @app.route("/api/atestados", methods=["POST"], endpoint="atestados_save")
    @login_required
    @json_errors
    def atestados_save():
        data = json_body()
        atestado_id = atestados.save(
            current_role=current_role(),
            escola_id=require_escola_id(),
            aluno_id=data.get("aluno_id") or "",
            data_inicio=parse_iso_date(data.get("data_inicio") or ""),
            data_fim=parse_iso_date(data.get("data_fim") or ""),
            descricao=data.get("descricao") or "",
            atestado_id=data.get("id") or None,
        )
        return jsonify(id=atestado_id), 201 if not data.get("id") else 200

    @app.route("/api/atestados/<atestado_id>/aprovar", methods=["POST"], endpoint="atestados_approve")
    @login_required
    @json_errors
    def atestados_approve(atestado_id: str):
        atestados.approve(current_role=current_role(), atestado_id=atestado_id)
        return jsonify(ok=True, status=AtestadoStatus.APROVADO.value)

    @app.route("/api/atestados/<atestado_id>/rejeitar", methods=["POST"], endpoint="atestados_reject")
    @login_required
    @json_errors
    def atestados_reject(atestado_id: str):
        atestados.reject(current_role=current_role(), atestado_id=atestado_id)
        return jsonify(ok=True, status=AtestadoStatus.REJEITADO.value)

    @app.route("/api/atestados/<atestado_id>", methods=["DELETE"], endpoint="atestados_delete")
    @login_required
    @json_errors
    def atestados_delete(atestado_id: str):
        atestados.delete(current_role=current_role(), atestado_id=atestado_id)
        return jsonify(ok=True)
