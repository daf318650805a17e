import pytest

from app.core.errors import InvalidState, InvalidTransition
from app.core.lifecycle import (
    BID_TRANSITIONS,
    PROJECT_TRANSITIONS,
    BidStatus,
    ProjectStatus,
    ensure_bid_transition,
    ensure_project_transition,
    is_terminal_bid,
)


def test_every_status_has_a_transition_row():
    assert set(BID_TRANSITIONS) == set(BidStatus)
    assert set(PROJECT_TRANSITIONS) == set(ProjectStatus)


def test_pending_is_the_only_non_terminal_bid_status():
    assert not is_terminal_bid(BidStatus.pending)
    for s in (BidStatus.accepted, BidStatus.rejected, BidStatus.withdrawn):
        assert is_terminal_bid(s)
        assert BID_TRANSITIONS[s] == frozenset()


@pytest.mark.parametrize("target", [BidStatus.accepted, BidStatus.rejected, BidStatus.withdrawn])
def test_pending_bid_can_reach_every_terminal_state(target):
    ensure_bid_transition("pending", target)


@pytest.mark.parametrize("current", ["accepted", "rejected", "withdrawn"])
def test_terminal_bid_cannot_move(current):
    with pytest.raises(InvalidTransition):
        ensure_bid_transition(current, BidStatus.rejected)


def test_project_forward_path():
    ensure_project_transition("draft", ProjectStatus.published)
    ensure_project_transition("published", ProjectStatus.in_progress)
    ensure_project_transition("in_progress", ProjectStatus.completed)


@pytest.mark.parametrize("current", ["draft", "published"])
def test_cancel_allowed_before_work_starts(current):
    ensure_project_transition(current, ProjectStatus.cancelled)


@pytest.mark.parametrize(
    "current,target",
    [
        ("in_progress", ProjectStatus.published),
        ("in_progress", ProjectStatus.cancelled),
        ("completed", ProjectStatus.in_progress),
        ("cancelled", ProjectStatus.published),
        ("draft", ProjectStatus.in_progress),
        ("published", ProjectStatus.completed),
    ],
)
def test_project_never_regresses_or_skips(current, target):
    with pytest.raises(InvalidState):
        ensure_project_transition(current, target)
