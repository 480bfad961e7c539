from __future__ import annotations

from functools import wraps

from flask import Flask, jsonify, session

from ..common.http import current_role, json_body, json_errors
from ..container import Container


def register(app: Flask, container: Container) -> None:
    def login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return jsonify(error="Faça login para continuar"), 401
            return view(*args, **kwargs)

        return wrapper

    @app.route("/api/notificacoes", methods=["POST"], endpoint="notifications_send")
    @login_required
    @json_errors
    def notifications_send():
        data = json_body()
        result = container.push_service.send(
            current_role=current_role(),
            title=data.get("titulo") or "",
            message=data.get("mensagem") or "",
        )
        return jsonify(id=result.notification_id, recipients=result.recipients)
