"""Backup da fila offline.

Note: Copia chamadas pendentes, rejeitadas e sessões em andamento para um
arquivo JSON em backups/. Útil antes de trocar de escola ou reinstalar.
"""

from __future__ import annotations

import importlib
import json
from datetime import datetime
from pathlib import Path

from chamada_diaria.config import get_settings_module
from chamada_diaria.container import build_store
from chamada_diaria.core.constants import DEAD_LETTER_KEY, PENDING_KEY, SESSION_KEY


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    store = build_store(settings.LOCAL_STORE_PATH)

    out_dir = Path(__file__).resolve().parents[1] / "backups"
    out_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    out_file = out_dir / f"chamadas_offline_{ts}.json"

    payload = {key: store.get(key) for key in (PENDING_KEY, DEAD_LETTER_KEY, SESSION_KEY)}
    out_file.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    print(f"OK: Backup created: {out_file} ({len(payload[PENDING_KEY] or [])} pendentes)")


if __name__ == "__main__":
    main()
