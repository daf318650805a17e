"""
Two sessions on one file-backed database: the first request reads a row,
a second request commits a competing transition before the first one
writes, and the first one must then fail without touching anything.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.errors import InvalidState, InvalidTransition
from app.core.lifecycle import BidStatus, ProjectStatus
from app.db.base import Base
from app.models.bid import Bid
from app.models.enums import UserRole
from app.models.project import Project
from app.services import bids_service, project_coordinator, projects_service
from app.services.bids_service import BidService
from app.services.project_coordinator import ProjectCoordinator
from app.services.projects_service import ProjectsService
from app.tests.factories import make_bid, make_project, make_user


@pytest.fixture
def open_session(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'marketplace.db'}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    opened = []

    def _open():
        s = factory()
        opened.append(s)
        return s

    try:
        yield _open
    finally:
        for s in opened:
            s.close()
        engine.dispose()


@pytest.fixture
def scenario(open_session):
    db = open_session()
    client = make_user(db, UserRole.CLIENT, name="Client")
    f1 = make_user(db, UserRole.FREELANCER, name="F1")
    f2 = make_user(db, UserRole.FREELANCER, name="F2")
    project = make_project(db, client)
    b1 = make_bid(db, project, f1)
    b2 = make_bid(db, project, f2)
    return {
        "db": db,
        "client": client,
        "client_id": client.id,
        "f1_id": f1.id,
        "project_id": project.id,
        "b1_id": b1.id,
        "b2_id": b2.id,
    }


def _run_other_request_first(monkeypatch, module, name, other_request):
    """
    Wrap module.<name> so other_request runs (once) right after the first
    request has read its rows and before it writes.
    """
    real = getattr(module, name)
    fired = []

    def wrapper(*args, **kwargs):
        if not fired:
            fired.append(True)
            other_request()
        return real(*args, **kwargs)

    monkeypatch.setattr(module, name, wrapper)
    return fired


def _accept_in_other_session(open_session, s):
    def run():
        ProjectCoordinator().accept_bid(
            open_session(),
            project_id=s["project_id"],
            winning_bid_id=s["b1_id"],
            caller_id=s["client_id"],
        )
    return run


def _state(open_session, s):
    fresh = open_session()
    p = fresh.get(Project, s["project_id"])
    return p, fresh.get(Bid, s["b1_id"]), fresh.get(Bid, s["b2_id"])


def test_cancel_loses_to_acceptance_committed_after_its_read(open_session, scenario, monkeypatch):
    s = scenario
    fired = _run_other_request_first(
        monkeypatch, projects_service, "ensure_project_transition", _accept_in_other_session(open_session, s)
    )

    with pytest.raises(InvalidState):
        ProjectsService().cancel(s["db"], project_id=s["project_id"], owner_id=s["client_id"])
    assert fired

    p, b1, b2 = _state(open_session, s)
    assert p.status == ProjectStatus.in_progress.value
    assert p.cancelled_at is None
    assert p.accepted_bid_id == s["b1_id"]
    assert b1.status == BidStatus.accepted.value
    assert b2.status == BidStatus.rejected.value


def test_withdraw_loses_to_acceptance_committed_after_its_read(open_session, scenario, monkeypatch):
    s = scenario
    fired = _run_other_request_first(
        monkeypatch, bids_service, "ensure_bid_transition", _accept_in_other_session(open_session, s)
    )

    with pytest.raises(InvalidTransition):
        BidService().withdraw(s["db"], bid_id=s["b1_id"], by_freelancer_id=s["f1_id"])
    assert fired

    p, b1, _ = _state(open_session, s)
    assert b1.status == BidStatus.accepted.value
    assert b1.withdrawn_at is None
    assert p.status == ProjectStatus.in_progress.value


def test_reject_loses_to_acceptance_committed_after_its_read(open_session, scenario, monkeypatch):
    s = scenario
    fired = _run_other_request_first(
        monkeypatch, bids_service, "ensure_bid_transition", _accept_in_other_session(open_session, s)
    )

    with pytest.raises(InvalidTransition):
        BidService().reject(s["db"], bid_id=s["b1_id"], by_owner_id=s["client_id"])
    assert fired

    p, b1, _ = _state(open_session, s)
    assert b1.status == BidStatus.accepted.value
    assert b1.rejected_at is None
    assert p.status == ProjectStatus.in_progress.value


def test_accept_loses_to_withdrawal_committed_after_its_read(open_session, scenario, monkeypatch):
    s = scenario

    def withdraw_in_other_session():
        BidService().withdraw(open_session(), bid_id=s["b1_id"], by_freelancer_id=s["f1_id"])

    fired = _run_other_request_first(
        monkeypatch, project_coordinator, "ensure_bid_transition", withdraw_in_other_session
    )

    with pytest.raises(InvalidTransition):
        ProjectCoordinator().accept_bid(
            s["db"], project_id=s["project_id"], winning_bid_id=s["b1_id"], caller_id=s["client_id"]
        )
    assert fired

    p, b1, b2 = _state(open_session, s)
    assert b1.status == BidStatus.withdrawn.value
    assert b2.status == BidStatus.pending.value
    assert p.status == ProjectStatus.published.value
    assert p.accepted_bid_id is None


def test_publish_loses_to_cancel_committed_after_its_read(open_session, scenario, monkeypatch):
    s = scenario
    draft = make_project(s["db"], s["client"], status=ProjectStatus.draft)
    draft_id = draft.id

    def cancel_in_other_session():
        ProjectsService().cancel(open_session(), project_id=draft_id, owner_id=s["client_id"])

    fired = _run_other_request_first(
        monkeypatch, projects_service, "ensure_project_transition", cancel_in_other_session
    )

    with pytest.raises(InvalidState):
        ProjectsService().publish(s["db"], project_id=draft_id, owner_id=s["client_id"])
    assert fired

    p = open_session().get(Project, draft_id)
    assert p.status == ProjectStatus.cancelled.value
    assert p.published_at is None
