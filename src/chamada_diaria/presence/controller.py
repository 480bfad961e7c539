from __future__ import annotations

from functools import wraps

from flask import Flask, jsonify, session

from ..common.http import current_escola_id, json_errors
from ..container import Container
from .hub import room_for


def register(app: Flask, container: Container) -> None:
    hub = container.presence_hub

    def login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return jsonify(error="Faça login para continuar"), 401
            return view(*args, **kwargs)

        return wrapper

    @app.route("/api/presence/heartbeat", methods=["POST"], endpoint="presence_heartbeat")
    @login_required
    @json_errors
    def presence_heartbeat():
        entry = hub.track(
            user_id=str(session["user_id"]),
            escola_id=current_escola_id(),
            role=session.get("role"),
        )
        return jsonify(room=room_for(current_escola_id()), **entry.to_dict())

    @app.route("/api/presence", methods=["DELETE"], endpoint="presence_leave")
    @login_required
    @json_errors
    def presence_leave():
        hub.untrack(user_id=str(session["user_id"]), escola_id=current_escola_id())
        return jsonify(ok=True)

    @app.route("/api/presence", methods=["GET"], endpoint="presence_online")
    @login_required
    @json_errors
    def presence_online():
        members = hub.online(current_escola_id())
        return jsonify(room=room_for(current_escola_id()), online=[m.to_dict() for m in members])
