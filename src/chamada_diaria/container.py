from __future__ import annotations

from dataclasses import dataclass
from types import ModuleType
from typing import Optional

from .atestados.service import AtestadoService
from .chamada.service import ChamadaService
from .chamada.session_builder import SessionBuilder
from .gateway.repository import RemoteGateway
from .gateway.supabase_gateway import SupabaseGateway, connect
from .notifications.service import PushNotificationService
from .offline.kv_store import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore
from .offline.outbox import OfflineOutbox
from .presence.hub import PresenceHub
from .reference.service import ReferenceDataService
from .reports.service import ReportService
from .sync.backoff import BackoffPolicy
from .sync.engine import SyncEngine
from .sync.monitor import ConnectivityMonitor, HttpProbe, Probe
from .sync.runtime import SyncRuntime
from .sync.status import SyncStatusPublisher


@dataclass(frozen=True)
class Container:
    store: KeyValueStore
    outbox: OfflineOutbox
    gateway: RemoteGateway

    status_publisher: SyncStatusPublisher
    sync_engine: SyncEngine
    monitor: ConnectivityMonitor
    runtime: SyncRuntime

    reference_service: ReferenceDataService
    chamada_service: ChamadaService
    report_service: ReportService
    atestado_service: AtestadoService
    push_service: PushNotificationService
    presence_hub: PresenceHub


def build_store(path: str) -> KeyValueStore:
    if not path or path == ":memory:":
        return InMemoryKeyValueStore()
    return SQLiteKeyValueStore(path)


def build_container(
    *,
    settings: ModuleType,
    gateway: Optional[RemoteGateway] = None,
    store: Optional[KeyValueStore] = None,
    probe: Optional[Probe] = None,
    push_service: Optional[PushNotificationService] = None,
) -> Container:
    """Wire every collaborator from a settings module.

    ``gateway``, ``store``, ``probe`` and ``push_service`` can be passed in to
    replace the networked defaults (tests, offline demos).
    """

    supabase_url = getattr(settings, "SUPABASE_URL", "")
    if gateway is None:
        gateway = SupabaseGateway(connect(supabase_url, getattr(settings, "SUPABASE_KEY", "")))
    if store is None:
        store = build_store(getattr(settings, "LOCAL_STORE_PATH", ":memory:"))
    if probe is None:
        probe = HttpProbe(supabase_url)

    outbox = OfflineOutbox(store)
    status_publisher = SyncStatusPublisher()
    sync_engine = SyncEngine(
        outbox,
        gateway,
        backoff=BackoffPolicy(
            base_seconds=float(getattr(settings, "SYNC_BACKOFF_BASE_SECONDS", 2)),
            ceiling_seconds=float(getattr(settings, "SYNC_BACKOFF_CEILING_SECONDS", 300)),
        ),
        publisher=status_publisher,
        max_attempts_warning=int(getattr(settings, "SYNC_MAX_ATTEMPTS_WARNING", 5)),
    )
    monitor = ConnectivityMonitor(
        sync_engine,
        probe,
        poll_seconds=float(getattr(settings, "CONNECTIVITY_POLL_SECONDS", 10)),
        sync_interval_seconds=float(getattr(settings, "SYNC_INTERVAL_SECONDS", 60)),
    )
    runtime = SyncRuntime(sync_engine, monitor)

    reference_service = ReferenceDataService(
        outbox,
        gateway,
        ttl_hours=float(getattr(settings, "REFERENCE_CACHE_TTL_HOURS", 24)),
    )
    chamada_service = ChamadaService(
        outbox,
        reference_service,
        SessionBuilder(future_grace_days=int(getattr(settings, "FUTURE_GRACE_DAYS", 0))),
        is_online=lambda: monitor.is_online,
        request_sync=monitor.request_sync,
    )
    if push_service is None:
        push_service = PushNotificationService(
            app_id=getattr(settings, "ONESIGNAL_APP_ID", ""),
            rest_api_key=getattr(settings, "ONESIGNAL_REST_API_KEY", ""),
        )

    return Container(
        store=store,
        outbox=outbox,
        gateway=gateway,
        status_publisher=status_publisher,
        sync_engine=sync_engine,
        monitor=monitor,
        runtime=runtime,
        reference_service=reference_service,
        chamada_service=chamada_service,
        report_service=ReportService(gateway),
        atestado_service=AtestadoService(gateway),
        push_service=push_service,
        presence_hub=PresenceHub(),
    )
