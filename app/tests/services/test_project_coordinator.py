import uuid
from decimal import Decimal
from unittest import mock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.core.errors import (
    Forbidden,
    InvalidState,
    InvalidTransition,
    NotFound,
    UpstreamFailure,
    ValidationError,
)
from app.core.lifecycle import BidStatus, ProjectStatus
from app.models.bid import Bid
from app.models.enums import NotificationType, UserRole
from app.models.message import Message
from app.models.notification import Notification
from app.models.project import Project
from app.models.review import Review
from app.models.user import User
from app.services.fanout import NotificationFanout
from app.services.project_coordinator import ProjectCoordinator
from app.tests.factories import RecordingPush, make_bid, make_project, make_user


@pytest.fixture
def scenario(db):
    """
    P1 published, B1 (F1, pending), B2 (F2, pending).
    """
    client = make_user(db, UserRole.CLIENT, name="Client")
    f1 = make_user(db, UserRole.FREELANCER, name="F1")
    f2 = make_user(db, UserRole.FREELANCER, name="F2")
    project = make_project(db, client)
    b1 = make_bid(db, project, f1)
    b2 = make_bid(db, project, f2)
    return {"client": client, "f1": f1, "f2": f2, "project": project, "b1": b1, "b2": b2}


def _snapshot(db, project_id):
    db.expire_all()
    p = db.get(Project, project_id)
    bids = db.execute(select(Bid).where(Bid.project_id == project_id).order_by(Bid.id)).scalars().all()
    return (
        (p.status, p.freelancer_id, p.accepted_bid_id, p.started_at),
        [(b.id, b.status, b.accepted_at, b.rejected_at) for b in bids],
    )


# ---------------------------------------------------------------------
# accept_bid
# ---------------------------------------------------------------------


def test_accept_moves_project_and_rejects_siblings(db, scenario):
    s = scenario
    out = ProjectCoordinator().accept_bid(
        db, project_id=s["project"].id, winning_bid_id=s["b1"].id, caller_id=s["client"].id
    )

    db.expire_all()
    b1 = db.get(Bid, s["b1"].id)
    b2 = db.get(Bid, s["b2"].id)
    p = db.get(Project, s["project"].id)

    assert b1.status == BidStatus.accepted.value
    assert b1.accepted_at is not None
    assert b2.status == BidStatus.rejected.value
    assert p.status == ProjectStatus.in_progress.value
    assert p.freelancer_id == s["f1"].id
    assert p.accepted_bid_id == s["b1"].id
    assert p.started_at is not None
    assert out.rejected_bid_ids == [s["b2"].id]


def test_single_winner_leaves_withdrawn_bids_alone(db, scenario):
    s = scenario
    f3 = make_user(db, UserRole.FREELANCER)
    f4 = make_user(db, UserRole.FREELANCER)
    b3 = make_bid(db, s["project"], f3, status=BidStatus.withdrawn)
    b4 = make_bid(db, s["project"], f4)

    ProjectCoordinator().accept_bid(
        db, project_id=s["project"].id, winning_bid_id=s["b2"].id, caller_id=s["client"].id
    )

    db.expire_all()
    statuses = {b.id: b.status for b in db.execute(select(Bid)).scalars()}
    assert statuses == {
        s["b1"].id: BidStatus.rejected.value,
        s["b2"].id: BidStatus.accepted.value,
        b3.id: BidStatus.withdrawn.value,
        b4.id: BidStatus.rejected.value,
    }
    accepted = [k for k, v in statuses.items() if v == BidStatus.accepted.value]
    assert accepted == [s["b2"].id]


def test_accept_by_non_owner_is_forbidden_and_changes_nothing(db, scenario):
    s = scenario
    before = _snapshot(db, s["project"].id)

    for caller in (s["f1"].id, s["f2"].id, uuid.uuid4()):
        with pytest.raises(Forbidden):
            ProjectCoordinator().accept_bid(
                db, project_id=s["project"].id, winning_bid_id=s["b1"].id, caller_id=caller
            )

    assert _snapshot(db, s["project"].id) == before
    assert db.execute(select(func.count()).select_from(Notification)).scalar_one() == 0


def test_accept_missing_project(db, scenario):
    with pytest.raises(NotFound):
        ProjectCoordinator().accept_bid(
            db, project_id=uuid.uuid4(), winning_bid_id=scenario["b1"].id, caller_id=scenario["client"].id
        )


@pytest.mark.parametrize("status", [ProjectStatus.draft, ProjectStatus.completed, ProjectStatus.cancelled])
def test_accept_requires_published(db, status):
    client = make_user(db, UserRole.CLIENT)
    project = make_project(db, client, status=status)
    bid = make_bid(db, project, make_user(db, UserRole.FREELANCER))

    with pytest.raises(InvalidState):
        ProjectCoordinator().accept_bid(
            db, project_id=project.id, winning_bid_id=bid.id, caller_id=client.id
        )
    db.refresh(bid)
    assert bid.status == BidStatus.pending.value


def test_accept_bid_from_other_project(db, scenario):
    s = scenario
    other = make_project(db, s["client"])
    foreign = make_bid(db, other, s["f1"])

    with pytest.raises(ValidationError):
        ProjectCoordinator().accept_bid(
            db, project_id=s["project"].id, winning_bid_id=foreign.id, caller_id=s["client"].id
        )


def test_accept_withdrawn_bid(db, scenario):
    s = scenario
    gone = make_bid(db, s["project"], make_user(db, UserRole.FREELANCER), status=BidStatus.withdrawn)

    with pytest.raises(InvalidTransition):
        ProjectCoordinator().accept_bid(
            db, project_id=s["project"].id, winning_bid_id=gone.id, caller_id=s["client"].id
        )


def test_second_acceptance_fails_and_state_never_regresses(db, scenario):
    s = scenario
    coord = ProjectCoordinator()
    coord.accept_bid(db, project_id=s["project"].id, winning_bid_id=s["b1"].id, caller_id=s["client"].id)

    with pytest.raises(InvalidState):
        coord.accept_bid(db, project_id=s["project"].id, winning_bid_id=s["b2"].id, caller_id=s["client"].id)

    db.expire_all()
    p = db.get(Project, s["project"].id)
    assert p.status == ProjectStatus.in_progress.value
    assert p.accepted_bid_id == s["b1"].id


def test_lost_compare_and_swap_rolls_everything_back(db, scenario):
    """
    Simulates another request moving the project between our lock read
    and the conditional update.
    """
    s = scenario
    coord = ProjectCoordinator()

    def racing_cas(db_, project_id, expected, **values):
        raise InvalidState("Project status changed concurrently; nothing was applied.")

    with mock.patch.object(coord, "_cas_project_status", side_effect=racing_cas):
        with pytest.raises(InvalidState):
            coord.accept_bid(db, project_id=s["project"].id, winning_bid_id=s["b1"].id, caller_id=s["client"].id)

    db.expire_all()
    assert db.get(Bid, s["b1"].id).status == BidStatus.pending.value
    assert db.get(Bid, s["b2"].id).status == BidStatus.pending.value
    assert db.get(Project, s["project"].id).status == ProjectStatus.published.value


def test_storage_error_surfaces_as_upstream_failure(db, scenario):
    s = scenario
    coord = ProjectCoordinator()
    boom = OperationalError("UPDATE projects", {}, Exception("disk I/O error"))

    with mock.patch.object(coord.bids, "reject_pending_siblings", side_effect=boom):
        with pytest.raises(UpstreamFailure):
            coord.accept_bid(db, project_id=s["project"].id, winning_bid_id=s["b1"].id, caller_id=s["client"].id)

    db.expire_all()
    assert db.get(Bid, s["b1"].id).status == BidStatus.pending.value


def test_accept_side_effects(db, scenario):
    s = scenario
    push = RecordingPush()
    out = ProjectCoordinator(fanout=NotificationFanout(push=push)).accept_bid(
        db, project_id=s["project"].id, winning_bid_id=s["b1"].id, caller_id=s["client"].id
    )

    assert all(o.ok for o in out.side_effects), out.side_effects
    names = [o.name for o in out.side_effects]
    assert "in_app:bid_accepted" in names
    assert "in_app:project_started" in names
    assert "push:bid_accepted" in names
    assert "chat:kickoff" in names

    notes = db.execute(select(Notification)).scalars().all()
    kinds = {(n.user_id, n.type) for n in notes}
    assert (s["f1"].id, NotificationType.bid_accepted.value) in kinds
    assert (s["client"].id, NotificationType.project_started.value) in kinds

    msg = db.execute(select(Message)).scalar_one()
    assert msg.sender_id == s["client"].id
    assert msg.receiver_id == s["f1"].id
    assert {p["user_id"] for p in push.sent} == {s["f1"].id, s["client"].id}


def test_failing_side_effects_never_undo_acceptance(db, scenario):
    s = scenario
    coord = ProjectCoordinator()

    with mock.patch.object(coord.fanout.notifications, "create", side_effect=RuntimeError("db down")), \
            mock.patch.object(coord.chat, "send_kickoff", side_effect=RuntimeError("chat down")):
        out = coord.accept_bid(
            db, project_id=s["project"].id, winning_bid_id=s["b1"].id, caller_id=s["client"].id
        )

    failed = {o.name for o in out.side_effects if not o.ok}
    assert {"in_app:bid_accepted", "in_app:project_started", "chat:kickoff"} <= failed

    db.expire_all()
    assert db.get(Project, s["project"].id).status == ProjectStatus.in_progress.value
    assert db.get(Bid, s["b1"].id).status == BidStatus.accepted.value


# ---------------------------------------------------------------------
# complete_project
# ---------------------------------------------------------------------


def _accepted(db, s):
    ProjectCoordinator().accept_bid(
        db, project_id=s["project"].id, winning_bid_id=s["b1"].id, caller_id=s["client"].id
    )


def test_complete_with_review_updates_rating_and_stats(db, scenario):
    s = scenario
    _accepted(db, s)

    # an earlier review on another project
    older = make_project(db, s["client"], status=ProjectStatus.completed)
    db.add(Review(project_id=older.id, reviewer_id=s["client"].id, reviewee_id=s["f1"].id, rating=3, comment="ok"))
    db.commit()

    out = ProjectCoordinator().complete_project(
        db, project_id=s["project"].id, caller_id=s["client"].id, rating=5, review_text="Great work"
    )

    assert out.project.status == ProjectStatus.completed.value
    assert out.project.completed_at is not None
    assert out.project.final_amount == Decimal("1000.00")
    assert out.review is not None
    assert out.freelancer_rating == pytest.approx(4.0)

    reviews = db.execute(select(Review).where(Review.project_id == s["project"].id)).scalars().all()
    assert len(reviews) == 1

    db.expire_all()
    f1 = db.get(User, s["f1"].id)
    assert f1.rating == pytest.approx(4.0)
    assert f1.completed_projects == 1
    assert f1.total_earnings == Decimal("1000.00")


def test_complete_uses_explicit_final_amount_and_skips_partial_review(db, scenario):
    s = scenario
    _accepted(db, s)

    out = ProjectCoordinator().complete_project(
        db, project_id=s["project"].id, caller_id=s["client"].id, final_amount=Decimal("750"), rating=4
    )

    assert out.review is None
    assert out.project.final_amount == Decimal("750")
    db.expire_all()
    f1 = db.get(User, s["f1"].id)
    assert f1.rating is None
    assert f1.total_earnings == Decimal("750")


def test_complete_without_budget_adds_nothing_to_earnings(db):
    client = make_user(db, UserRole.CLIENT)
    freelancer = make_user(db, UserRole.FREELANCER)
    project = make_project(db, client, budget=None)
    bid = make_bid(db, project, freelancer)
    coord = ProjectCoordinator()
    coord.accept_bid(db, project_id=project.id, winning_bid_id=bid.id, caller_id=client.id)

    out = coord.complete_project(db, project_id=project.id, caller_id=client.id)

    assert out.project.final_amount is None
    db.expire_all()
    f = db.get(User, freelancer.id)
    assert f.completed_projects == 1
    assert f.total_earnings == Decimal("0")


def test_complete_requires_owner(db, scenario):
    s = scenario
    _accepted(db, s)
    with pytest.raises(Forbidden):
        ProjectCoordinator().complete_project(db, project_id=s["project"].id, caller_id=s["f1"].id)


@pytest.mark.parametrize("status", [ProjectStatus.draft, ProjectStatus.published, ProjectStatus.completed])
def test_complete_requires_in_progress(db, status):
    client = make_user(db, UserRole.CLIENT)
    project = make_project(db, client, status=status)
    with pytest.raises(InvalidState):
        ProjectCoordinator().complete_project(db, project_id=project.id, caller_id=client.id)


def test_complete_twice_fails(db, scenario):
    s = scenario
    _accepted(db, s)
    coord = ProjectCoordinator()
    coord.complete_project(db, project_id=s["project"].id, caller_id=s["client"].id)
    with pytest.raises(InvalidState):
        coord.complete_project(db, project_id=s["project"].id, caller_id=s["client"].id)

    db.expire_all()
    assert db.get(User, s["f1"].id).completed_projects == 1


def test_complete_notifies_freelancer(db, scenario):
    s = scenario
    _accepted(db, s)
    out = ProjectCoordinator().complete_project(db, project_id=s["project"].id, caller_id=s["client"].id)

    assert [o.name for o in out.side_effects if o.name.startswith("in_app")] == ["in_app:project_completed"]
    note = db.execute(
        select(Notification).where(
            Notification.user_id == s["f1"].id,
            Notification.type == NotificationType.project_completed.value,
        )
    ).scalar_one()
    assert note.metadata_json["final_amount"] == "1000.00"
