from __future__ import annotations

from dataclasses import asdict
from functools import wraps

from flask import Flask, jsonify, request, session

from ..common.datetime_utils import parse_optional_date
from ..common.http import current_role, json_errors, page_arg, require_escola_id
from ..container import Container
from .model import Page


def register(app: Flask, container: Container) -> None:
    reports = container.report_service

    def login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return jsonify(error="Faça login para continuar"), 401
            return view(*args, **kwargs)

        return wrapper

    def _page_json(page: Page):
        return jsonify(
            items=[row.model_dump(mode="json") for row in page.items],
            page=page.page,
            page_size=page.page_size,
            total_records=page.total_records,
            total_pages=page.total_pages,
        )

    @app.route("/api/relatorios/faltosos", methods=["GET"], endpoint="report_faltosos")
    @login_required
    @json_errors
    def report_faltosos():
        page = reports.ranking_faltosos(
            current_role=current_role(),
            escola_id=require_escola_id(),
            nome_filtro=request.args.get("nome", ""),
            turma_id=request.args.get("turma_id") or None,
            page=page_arg(),
        )
        return _page_json(page)

    @app.route("/api/relatorios/faltosos.csv", methods=["GET"], endpoint="report_faltosos_csv")
    @login_required
    @json_errors
    def report_faltosos_csv():
        csv_bytes = reports.export_faltosos_csv(
            current_role=current_role(),
            escola_id=require_escola_id(),
            nome_filtro=request.args.get("nome", ""),
            turma_id=request.args.get("turma_id") or None,
        )
        return app.response_class(
            csv_bytes,
            mimetype="text/csv",
            headers={"Content-Disposition": "attachment; filename=Relatorio_Alunos_Faltosos.csv"},
        )

    @app.route("/api/relatorios/atestados", methods=["GET"], endpoint="report_atestados")
    @login_required
    @json_errors
    def report_atestados():
        page = reports.relatorio_atestados(
            current_role=current_role(),
            escola_id=require_escola_id(),
            data_inicio=parse_optional_date(request.args.get("inicio")),
            data_fim=parse_optional_date(request.args.get("fim")),
            page=page_arg(),
        )
        return _page_json(page)

    @app.route("/api/relatorios/atestados-pendentes", methods=["GET"], endpoint="report_atestados_pendentes")
    @login_required
    @json_errors
    def report_atestados_pendentes():
        page = reports.atestados_pendentes(
            current_role=current_role(), escola_id=require_escola_id(), page=page_arg()
        )
        return _page_json(page)

    @app.route("/api/relatorios/taxa-presenca", methods=["GET"], endpoint="report_taxa_presenca")
    @login_required
    @json_errors
    def report_taxa_presenca():
        rows = reports.taxa_presenca(
            current_role=current_role(),
            escola_id=require_escola_id(),
            data_inicio=parse_optional_date(request.args.get("inicio")),
            data_fim=parse_optional_date(request.args.get("fim")),
        )
        return jsonify([row.model_dump(mode="json") for row in rows])

    @app.route("/api/relatorios/alertas", methods=["GET"], endpoint="report_alertas")
    @login_required
    @json_errors
    def report_alertas():
        alertas = reports.alertas(current_role=current_role(), escola_id=require_escola_id())
        return jsonify([asdict(a) for a in alertas])

    # Public: students look themselves up by name + matrícula.
    @app.route("/api/consultar-faltas", methods=["GET"], endpoint="consultar_faltas")
    @json_errors
    def consultar_faltas():
        result = reports.consultar_faltas(
            nome=request.args.get("nome", ""),
            matricula=request.args.get("matricula", ""),
        )
        return jsonify(asdict(result))
