from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from ..common.validators import require_non_empty
from ..core.constants import ONESIGNAL_DEFAULT_SEGMENT, ONESIGNAL_URL
from ..core.enums import Role
from ..core.exceptions import AuthorizationError, NotificationError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushResult:
    notification_id: Optional[str]
    recipients: int


class PushNotificationService:
    """Broadcast push notifications through the OneSignal REST API."""

    def __init__(
        self,
        *,
        app_id: str,
        rest_api_key: str,
        session: Optional[requests.Session] = None,
        url: str = ONESIGNAL_URL,
        timeout: float = 10.0,
    ):
        self._app_id = app_id
        self._rest_api_key = rest_api_key
        self._session = session or requests.Session()
        self._url = url
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._app_id and self._rest_api_key)

    def build_payload(self, *, title: str, message: str, segment: str = ONESIGNAL_DEFAULT_SEGMENT) -> dict:
        return {
            "app_id": self._app_id,
            "included_segments": [segment],
            "contents": {"en": message, "pt": message},
            "headings": {"en": title, "pt": title},
        }

    def send(self, *, current_role: Role, title: str, message: str) -> PushResult:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Apenas administradores podem enviar notificações")
        title = require_non_empty(title, "Título")
        message = require_non_empty(message, "Mensagem")
        if not self.configured:
            raise ValidationError("Notificações push não configuradas")

        try:
            response = self._session.post(
                self._url,
                json=self.build_payload(title=title, message=message),
                headers={
                    "Content-Type": "application/json; charset=utf-8",
                    "Authorization": f"Basic {self._rest_api_key}",
                },
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise NotificationError(f"Erro ao enviar notificação: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.ok:
            errors = body.get("errors")
            detail = errors[0] if isinstance(errors, list) and errors else "Erro ao enviar notificação"
            logger.warning("OneSignal rejected notification (%s): %s", response.status_code, detail)
            raise NotificationError(str(detail))

        logger.info("Push notification sent: %s", title)
        return PushResult(notification_id=body.get("id"), recipients=int(body.get("recipients") or 0))
