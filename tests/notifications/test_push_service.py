from __future__ import annotations

import pytest
import requests

from chamada_diaria.core.enums import Role
from chamada_diaria.core.exceptions import AuthorizationError, NotificationError, ValidationError
from chamada_diaria.notifications.service import PushNotificationService


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, *, json, headers, timeout):
        self.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


def make_service(session, app_id="app-1", key="secret"):
    return PushNotificationService(app_id=app_id, rest_api_key=key, session=session, url="https://push.test/api")


def test_send_posts_payload_with_basic_auth():
    session = FakeSession(FakeResponse(200, {"id": "n-1", "recipients": 42}))

    result = make_service(session).send(current_role=Role.ADMIN, title=" Aviso ", message="Sem aula amanhã")

    assert (result.notification_id, result.recipients) == ("n-1", 42)
    post = session.posts[0]
    assert post["url"] == "https://push.test/api"
    assert post["headers"]["Authorization"] == "Basic secret"
    assert post["json"]["app_id"] == "app-1"
    assert post["json"]["headings"] == {"en": "Aviso", "pt": "Aviso"}
    assert post["json"]["contents"]["pt"] == "Sem aula amanhã"
    assert post["json"]["included_segments"] == ["Subscribed Users"]


def test_only_admin_sends():
    with pytest.raises(AuthorizationError):
        make_service(FakeSession()).send(current_role=Role.PROFESSOR, title="a", message="b")


def test_title_and_message_are_required():
    with pytest.raises(ValidationError):
        make_service(FakeSession()).send(current_role=Role.ADMIN, title="", message="b")


def test_unconfigured_service():
    service = make_service(FakeSession(), app_id="", key="")

    assert service.configured is False
    with pytest.raises(ValidationError):
        service.send(current_role=Role.ADMIN, title="a", message="b")


def test_provider_error_surfaces_first_message():
    session = FakeSession(FakeResponse(400, {"errors": ["All included players are not subscribed", "other"]}))

    with pytest.raises(NotificationError, match="not subscribed"):
        make_service(session).send(current_role=Role.ADMIN, title="a", message="b")


def test_provider_error_without_json_body():
    session = FakeSession(FakeResponse(502, ValueError("not json")))

    with pytest.raises(NotificationError, match="Erro ao enviar"):
        make_service(session).send(current_role=Role.ADMIN, title="a", message="b")


def test_network_failure():
    session = FakeSession(error=requests.ConnectionError("boom"))

    with pytest.raises(NotificationError):
        make_service(session).send(current_role=Role.ADMIN, title="a", message="b")
