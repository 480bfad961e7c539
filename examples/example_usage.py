"""Exemplo: inspecionar a fila offline do dispositivo (sem Flask).

Mostra as chamadas pendentes e as que o servidor rejeitou, direto do
armazenamento local configurado em LOCAL_STORE_PATH.
"""

import importlib

from chamada_diaria.config import get_settings_module
from chamada_diaria.container import build_store
from chamada_diaria.offline.outbox import OfflineOutbox


def main():
    settings = importlib.import_module(get_settings_module())
    outbox = OfflineOutbox(build_store(settings.LOCAL_STORE_PATH))

    print(f"Pendentes: {outbox.count_pending()}")
    for m in outbox.list_pending():
        print(f"  {m.key.as_str()} tentativas={m.attempts} desde={m.first_queued_at:%d/%m %H:%M}")

    print(f"Rejeitadas: {outbox.count_dead_letters()}")
    for d in outbox.list_dead_letters():
        print(f"  {d.key.as_str()} motivo={d.reason}")


if __name__ == "__main__":
    main()
