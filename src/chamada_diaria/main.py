from __future__ import annotations

import atexit
import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .atestados.controller import register as register_atestados
from .chamada.controller import register as register_chamada
from .config import get_settings_module
from .container import Container, build_container
from .notifications.controller import register as register_notifications
from .presence.controller import register as register_presence
from .reports.controller import register as register_reports


def create_app(container: Optional[Container] = None, *, start_sync: bool = True) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.json.ensure_ascii = False

    logging.basicConfig(
        level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if app.config["DEBUG"]:
        print(
            "[chamada-diaria] settings=", settings_module,
            " supabase=", getattr(settings, "SUPABASE_URL", "") or "<unset>",
            " store=", getattr(settings, "LOCAL_STORE_PATH", ":memory:"),
        )

    if container is None:
        container = build_container(settings=settings)
    app.extensions["chamada_container"] = container

    register_chamada(app, container)
    register_reports(app, container)
    register_atestados(app, container)
    register_notifications(app, container)
    register_presence(app, container)

    if start_sync:
        container.runtime.start()
        atexit.register(container.runtime.stop)

    return app
