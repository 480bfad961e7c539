from __future__ import annotations

import logging
from functools import wraps

from flask import Flask, jsonify, session

from ..common.datetime_utils import parse_iso_date
from ..common.http import current_role, json_body, json_errors, require_escola_id
from ..common.validators import require_non_empty, require_role
from ..container import Container
from ..core.enums import PresencaStatus, Role
from ..core.exceptions import ValidationError
from .model import MarkKey

logger = logging.getLogger(__name__)

SYNC_NOW_TIMEOUT_SECONDS = 60.0


def register(app: Flask, container: Container) -> None:
    runtime = container.runtime

    def login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return jsonify(error="Faça login para continuar"), 401
            return view(*args, **kwargs)

        return wrapper

    def _mark_key(data: dict) -> MarkKey:
        raw = require_non_empty(data.get("key"), "Chave")
        try:
            return MarkKey.parse(raw)
        except ValueError:
            raise ValidationError(f"Chave inválida: {raw}")

    def _status_payload() -> dict:
        return runtime.call(container.sync_engine.publish_status).to_dict()

    # Roll-call ---------------------------------------------------------------

    @app.route("/api/chamadas/<turma_id>/<data>", methods=["POST"], endpoint="chamada_start")
    @login_required
    @json_errors
    def chamada_start(turma_id: str, data: str):
        view = runtime.call(
            container.chamada_service.start,
            current_role=current_role(),
            school_id=require_escola_id(),
            class_id=turma_id,
            day=parse_iso_date(data),
        )
        return jsonify(view.to_dict())

    @app.route("/api/chamadas/<turma_id>/<data>/alunos/<aluno_id>", methods=["PUT"], endpoint="chamada_mark")
    @login_required
    @json_errors
    def chamada_mark(turma_id: str, data: str, aluno_id: str):
        raw_status = json_body().get("status") or ""
        try:
            status = PresencaStatus(raw_status)
        except ValueError:
            raise ValidationError(f"Status inválido: {raw_status!r}")

        chamada = runtime.call(
            container.chamada_service.mark,
            current_role=current_role(),
            class_id=turma_id,
            day=parse_iso_date(data),
            student_id=aluno_id,
            status=status,
        )
        return jsonify(chamada.to_dict())

    @app.route("/api/chamadas/<turma_id>/<data>/submit", methods=["POST"], endpoint="chamada_submit")
    @login_required
    @json_errors
    def chamada_submit(turma_id: str, data: str):
        marks = runtime.call(
            container.chamada_service.submit,
            current_role=current_role(),
            class_id=turma_id,
            day=parse_iso_date(data),
        )
        return jsonify(enviados=len(marks), sync=_status_payload()), 202

    @app.route("/api/chamadas/<turma_id>/<data>", methods=["DELETE"], endpoint="chamada_discard")
    @login_required
    @json_errors
    def chamada_discard(turma_id: str, data: str):
        parse_iso_date(data)
        runtime.call(container.chamada_service.discard, current_role=current_role(), class_id=turma_id)
        return jsonify(ok=True)

    # Sync --------------------------------------------------------------------

    @app.route("/api/sync/status", methods=["GET"], endpoint="sync_status")
    @login_required
    @json_errors
    def sync_status():
        return jsonify(_status_payload())

    @app.route("/api/sync/now", methods=["POST"], endpoint="sync_now")
    @login_required
    @json_errors
    def sync_now():
        require_role(current_role(), Role.ADMIN, Role.PROFESSOR)
        if container.monitor.is_online is False:
            return jsonify(error="Você precisa estar online para sincronizar", sync=_status_payload()), 409

        report = runtime.run(container.sync_engine.flush(), timeout=SYNC_NOW_TIMEOUT_SECONDS)
        result = None
        if report is not None:
            result = {
                "tentativas": report.attempted,
                "confirmados": report.confirmed,
                "dead_letters": report.dead_lettered,
                "interrompido": report.halted,
                "erro": report.error,
            }
        return jsonify(resultado=result, sync=_status_payload())

    @app.route("/api/sync/dead-letters", methods=["GET"], endpoint="sync_dead_letters")
    @login_required
    @json_errors
    def sync_dead_letters():
        require_role(current_role(), Role.ADMIN, Role.PROFESSOR)
        letters = runtime.call(container.outbox.list_dead_letters)
        return jsonify(
            [
                {
                    "key": d.key.as_str(),
                    "reason": d.reason,
                    "failed_at": d.failed_at.isoformat(),
                    "attempts": d.mutation.attempts,
                    "mark": d.mutation.mark.to_dict(),
                }
                for d in letters
            ]
        )

    @app.route("/api/sync/dead-letters/requeue", methods=["POST"], endpoint="sync_dead_letter_requeue")
    @login_required
    @json_errors
    def sync_dead_letter_requeue():
        require_role(current_role(), Role.ADMIN)
        key = _mark_key(json_body())
        if runtime.call(container.outbox.requeue_dead_letter, key) is None:
            raise ValidationError("Registro não encontrado na lista de falhas")
        runtime.call(container.monitor.request_sync)
        return jsonify(ok=True, sync=_status_payload())

    @app.route("/api/sync/dead-letters/discard", methods=["POST"], endpoint="sync_dead_letter_discard")
    @login_required
    @json_errors
    def sync_dead_letter_discard():
        require_role(current_role(), Role.ADMIN)
        key = _mark_key(json_body())
        if not runtime.call(container.outbox.discard_dead_letter, key):
            raise ValidationError("Registro não encontrado na lista de falhas")
        logger.warning("Dead letter %s discarded by user=%s", key.as_str(), session.get("user_id"))
        return jsonify(ok=True, sync=_status_payload())

    # Offline reference data ----------------------------------------------------

    @app.route("/api/offline/baixar-dados", methods=["POST"], endpoint="offline_download")
    @login_required
    @json_errors
    def offline_download():
        require_role(current_role(), Role.ADMIN, Role.PROFESSOR)
        summary = runtime.call(container.reference_service.download, require_escola_id())
        return jsonify(turmas=summary.turmas_count, alunos=summary.alunos_count)

    @app.route("/api/offline/invalidar", methods=["POST"], endpoint="offline_invalidate")
    @login_required
    @json_errors
    def offline_invalidate():
        require_role(current_role(), Role.ADMIN, Role.PROFESSOR)
        runtime.call(container.outbox.invalidate)
        return jsonify(ok=True, sync=_status_payload())
