from __future__ import annotations

from app.policies.rbac import ACTION_SUBMIT_BID, Principal, require_action


def enforce_bid_submit_role(principal: Principal) -> None:
    """
    Roles allowed to submit bids.
    """
    require_action(principal, ACTION_SUBMIT_BID)
