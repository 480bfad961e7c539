from __future__ import annotations

from datetime import date

import pytest

from chamada_diaria.chamada.service import ChamadaService
from chamada_diaria.chamada.session_builder import SessionBuilder
from chamada_diaria.core.enums import PresencaStatus, Role
from chamada_diaria.core.exceptions import AuthorizationError, IncompleteSessionError, ValidationError
from chamada_diaria.reference.model import Aluno, Turma
from chamada_diaria.reference.service import ReferenceDataService

TODAY = date(2024, 5, 1)


class Connectivity:
    def __init__(self, online=True):
        self.online = online
        self.sync_requests = 0

    def is_online(self):
        return self.online

    def request_sync(self):
        self.sync_requests += 1


@pytest.fixture
def net():
    return Connectivity()


@pytest.fixture
def service(outbox, gateway, fixed_now, net):
    gateway.turmas = [Turma("c1", "1º A"), Turma("c2", "2º B")]
    gateway.alunos = [
        Aluno("s2", "Bruna", "002", "c1"),
        Aluno("s1", "Ana", "001", "c1"),
        Aluno("s9", "Zé", "009", "c2"),
    ]
    reference = ReferenceDataService(outbox, gateway, ttl_hours=24, clock=fixed_now)
    reference.download("e1")
    return ChamadaService(
        outbox,
        reference,
        SessionBuilder(clock=fixed_now),
        is_online=net.is_online,
        request_sync=net.request_sync,
    )


def test_start_builds_session_from_cached_roster(service, outbox):
    view = service.start(current_role=Role.PROFESSOR, school_id="e1", class_id="c1", day=TODAY)

    assert [a.nome for a in view.alunos] == ["Ana", "Bruna"]
    assert view.session.missing_student_ids() == ["s1", "s2"]
    assert outbox.load_last_session("c1") == view.session
    assert view.to_dict()["faltando"] == ["s1", "s2"]


def test_students_cannot_take_roll_call(service):
    with pytest.raises(AuthorizationError):
        service.start(current_role=Role.ALUNO, school_id="e1", class_id="c1", day=TODAY)


def test_unknown_turma(service):
    with pytest.raises(ValidationError):
        service.start(current_role=Role.ADMIN, school_id="e1", class_id="nope", day=TODAY)


def test_mark_then_resume_after_restart(service, outbox, gateway, fixed_now, net):
    service.start(current_role=Role.PROFESSOR, school_id="e1", class_id="c1", day=TODAY)
    service.mark(current_role=Role.PROFESSOR, class_id="c1", day=TODAY, student_id="s1", status=PresencaStatus.FALTA)

    reopened = ChamadaService(
        outbox,
        ReferenceDataService(outbox, gateway, clock=fixed_now),
        SessionBuilder(clock=fixed_now),
        is_online=net.is_online,
    )
    view = reopened.start(current_role=Role.PROFESSOR, school_id="e1", class_id="c1", day=TODAY)

    assert view.session.status_by_student["s1"] == PresencaStatus.FALTA
    assert view.session.status_by_student["s2"] == PresencaStatus.UNSET


def test_mark_without_open_session(service):
    with pytest.raises(ValidationError):
        service.mark(current_role=Role.PROFESSOR, class_id="c1", day=TODAY, student_id="s1", status=PresencaStatus.FALTA)


def test_mark_rejects_unset(service):
    service.start(current_role=Role.PROFESSOR, school_id="e1", class_id="c1", day=TODAY)
    with pytest.raises(ValidationError):
        service.mark(current_role=Role.PROFESSOR, class_id="c1", day=TODAY, student_id="s1", status=PresencaStatus.UNSET)


def test_incomplete_submit_queues_nothing(service, outbox, net):
    service.start(current_role=Role.PROFESSOR, school_id="e1", class_id="c1", day=TODAY)
    service.mark(current_role=Role.PROFESSOR, class_id="c1", day=TODAY, student_id="s1", status=PresencaStatus.PRESENTE)

    with pytest.raises(IncompleteSessionError) as exc:
        service.submit(current_role=Role.PROFESSOR, class_id="c1", day=TODAY)

    assert exc.value.missing_student_ids == ["s2"]
    assert outbox.list_pending() == []
    assert outbox.load_last_session("c1") is not None
    assert net.sync_requests == 0


def test_submit_queues_marks_clears_session_and_requests_sync(service, outbox, net):
    service.start(current_role=Role.PROFESSOR, school_id="e1", class_id="c1", day=TODAY)
    service.mark(current_role=Role.PROFESSOR, class_id="c1", day=TODAY, student_id="s1", status=PresencaStatus.PRESENTE)
    service.mark(current_role=Role.PROFESSOR, class_id="c1", day=TODAY, student_id="s2", status=PresencaStatus.ATESTADO)

    marks = service.submit(current_role=Role.PROFESSOR, class_id="c1", day=TODAY)

    assert len(marks) == 2
    assert {m.mark.student_id for m in outbox.list_pending()} == {"s1", "s2"}
    assert outbox.load_last_session("c1") is None
    assert net.sync_requests == 1


def test_works_offline_with_cached_reference_data(service, gateway, net, outbox):
    net.online = False
    gateway.reference_calls = 0

    view = service.start(current_role=Role.PROFESSOR, school_id="e1", class_id="c1", day=TODAY)

    assert len(view.alunos) == 2
    assert gateway.reference_calls == 0


def test_discard(service, outbox):
    service.start(current_role=Role.PROFESSOR, school_id="e1", class_id="c1", day=TODAY)
    service.discard(current_role=Role.PROFESSOR, class_id="c1")

    assert outbox.load_last_session("c1") is None
