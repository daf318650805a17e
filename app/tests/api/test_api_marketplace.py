import uuid

from sqlalchemy import select

from app.core.lifecycle import BidStatus, ProjectStatus
from app.models.bid import Bid
from app.models.enums import UserRole
from app.models.project import Project
from app.models.review import Review
from app.tests.factories import auth_headers, make_bid, make_project, make_user

API = "/api/v1"


def _bid_body(amount="500.00", **extra):
    body = {"amount": amount, "deliveryDays": 10, "coverLetter": "I have done this many times."}
    body.update(extra)
    return body


def test_full_flow_create_publish_bid_accept_complete(client, db, push):
    owner = make_user(db, UserRole.CLIENT)
    f1 = make_user(db, UserRole.FREELANCER)
    f2 = make_user(db, UserRole.FREELANCER)

    r = client.post(f"{API}/projects", json={"title": "Shop", "budget": "1500"}, headers=auth_headers(owner))
    assert r.status_code == 201, r.text
    pid = r.json()["data"]["projectId"]
    assert r.json()["data"]["status"] == "draft"

    r = client.post(f"{API}/projects/{pid}/publish", headers=auth_headers(owner))
    assert r.json()["data"]["status"] == "published"

    r1 = client.post(f"{API}/projects/{pid}/bids", json=_bid_body(), headers=auth_headers(f1))
    r2 = client.post(f"{API}/projects/{pid}/bids", json=_bid_body("450"), headers=auth_headers(f2))
    assert r1.status_code == 201, r1.text
    assert r2.status_code == 201
    b1 = r1.json()["data"]["bidId"]
    b2 = r2.json()["data"]["bidId"]

    r = client.get(f"{API}/projects/{pid}/bids", headers=auth_headers(owner))
    assert r.json()["data"]["total"] == 2

    r = client.post(f"{API}/projects/{pid}/bids/{b1}/accept", headers=auth_headers(owner))
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["project"]["status"] == "in_progress"
    assert data["project"]["freelancerId"] == str(f1.id)
    assert data["project"]["acceptedBidId"] == b1
    assert data["bid"]["status"] == "accepted"
    assert data["rejectedBidIds"] == [b2]

    r = client.post(
        f"{API}/projects/{pid}/complete",
        json={"rating": 5, "review": "Great work"},
        headers=auth_headers(owner),
    )
    assert r.status_code == 200, r.text
    assert r.json()["data"]["project"]["status"] == "completed"
    assert r.json()["data"]["freelancerRating"] == 5.0

    db.expire_all()
    assert db.execute(select(Review)).scalar_one().rating == 5


def test_accept_by_stranger_is_403_and_changes_nothing(client, db):
    owner = make_user(db, UserRole.CLIENT)
    stranger = make_user(db, UserRole.CLIENT)
    p = make_project(db, owner)
    b = make_bid(db, p, make_user(db, UserRole.FREELANCER))

    r = client.post(f"{API}/projects/{p.id}/bids/{b.id}/accept", headers=auth_headers(stranger))
    assert r.status_code == 403
    assert r.json()["success"] is False

    db.expire_all()
    assert db.get(Project, p.id).status == ProjectStatus.published.value
    assert db.get(Bid, b.id).status == BidStatus.pending.value


def test_accept_unknown_project_is_404(client, db):
    owner = make_user(db, UserRole.CLIENT)
    r = client.post(f"{API}/projects/{uuid.uuid4()}/bids/{uuid.uuid4()}/accept", headers=auth_headers(owner))
    assert r.status_code == 404


def test_accept_is_replayed_with_same_idempotency_key(client, db):
    owner = make_user(db, UserRole.CLIENT)
    p = make_project(db, owner)
    b = make_bid(db, p, make_user(db, UserRole.FREELANCER))
    headers = {**auth_headers(owner), "Idempotency-Key": "accept-1"}

    first = client.post(f"{API}/projects/{p.id}/bids/{b.id}/accept", headers=headers)
    second = client.post(f"{API}/projects/{p.id}/bids/{b.id}/accept", headers=headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json() == first.json()
    assert second.headers.get("Idempotent-Replay") == "true"

    # without the key the second acceptance is a state error
    again = client.post(f"{API}/projects/{p.id}/bids/{b.id}/accept", headers=auth_headers(owner))
    assert again.status_code == 400


def test_idempotency_key_reuse_with_other_body_is_409(client, db):
    owner = make_user(db, UserRole.CLIENT)
    p = make_project(db, owner)
    b = make_bid(db, p, make_user(db, UserRole.FREELANCER))
    headers = auth_headers(owner)
    client.post(f"{API}/projects/{p.id}/bids/{b.id}/accept", headers=headers)

    h = {**headers, "Idempotency-Key": "complete-1"}
    assert client.post(f"{API}/projects/{p.id}/complete", json={"rating": 5, "review": "Nice"}, headers=h).status_code == 200
    r = client.post(f"{API}/projects/{p.id}/complete", json={"rating": 1, "review": "Bad"}, headers=h)
    assert r.status_code == 409
    assert r.json()["success"] is False


def test_client_cannot_submit_bid(client, db):
    owner = make_user(db, UserRole.CLIENT)
    other_client = make_user(db, UserRole.CLIENT)
    p = make_project(db, owner)
    r = client.post(f"{API}/projects/{p.id}/bids", json=_bid_body(), headers=auth_headers(other_client))
    assert r.status_code == 403


def test_duplicate_bid_is_400(client, db):
    owner = make_user(db, UserRole.CLIENT)
    f = make_user(db, UserRole.FREELANCER)
    p = make_project(db, owner)
    assert client.post(f"{API}/projects/{p.id}/bids", json=_bid_body(), headers=auth_headers(f)).status_code == 201
    r = client.post(f"{API}/projects/{p.id}/bids", json=_bid_body("300"), headers=auth_headers(f))
    assert r.status_code == 400
    assert r.json()["message"] == "You have already submitted a bid for this project."


def test_bid_on_draft_project_is_400(client, db):
    owner = make_user(db, UserRole.CLIENT)
    p = make_project(db, owner, status=ProjectStatus.draft)
    r = client.post(f"{API}/projects/{p.id}/bids", json=_bid_body(), headers=auth_headers(make_user(db, UserRole.FREELANCER)))
    assert r.status_code == 400


def test_delivery_time_text_is_parsed(client, db):
    owner = make_user(db, UserRole.CLIENT)
    p = make_project(db, owner)
    body = {"amount": "100", "deliveryTime": "2 недели", "coverLetter": "Short but real letter."}
    r = client.post(f"{API}/projects/{p.id}/bids", json=body, headers=auth_headers(make_user(db, UserRole.FREELANCER)))
    assert r.status_code == 201, r.text
    assert r.json()["data"]["deliveryDays"] == 14


def test_invalid_bid_body_is_400(client, db):
    owner = make_user(db, UserRole.CLIENT)
    p = make_project(db, owner)
    r = client.post(
        f"{API}/projects/{p.id}/bids",
        json={"amount": "-1", "coverLetter": "short"},
        headers=auth_headers(make_user(db, UserRole.FREELANCER)),
    )
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_bid_submission_is_rate_limited(client, db):
    owner = make_user(db, UserRole.CLIENT)
    f = make_user(db, UserRole.FREELANCER)
    client.app.state.bid_submit_limiter.capacity = 2.0
    client.app.state.bid_submit_limiter.refill_per_sec = 0.0

    codes = []
    for _ in range(3):
        p = make_project(db, owner)
        codes.append(client.post(f"{API}/projects/{p.id}/bids", json=_bid_body(), headers=auth_headers(f)).status_code)
    assert codes == [201, 201, 429]


def test_reject_and_withdraw(client, db):
    owner = make_user(db, UserRole.CLIENT)
    f1 = make_user(db, UserRole.FREELANCER)
    f2 = make_user(db, UserRole.FREELANCER)
    p = make_project(db, owner)
    b1 = make_bid(db, p, f1)
    b2 = make_bid(db, p, f2)

    r = client.post(f"{API}/projects/{p.id}/bids/{b1.id}/reject", headers=auth_headers(owner))
    assert r.json()["data"]["status"] == "rejected"

    r = client.post(f"{API}/bids/{b2.id}/withdraw", headers=auth_headers(f1))
    assert r.status_code == 403
    r = client.post(f"{API}/bids/{b2.id}/withdraw", headers=auth_headers(f2))
    assert r.json()["data"]["status"] == "withdrawn"

    r = client.post(f"{API}/projects/{p.id}/bids/{b2.id}/reject", headers=auth_headers(owner))
    assert r.status_code == 400


def test_freelancer_cannot_list_bids(client, db):
    owner = make_user(db, UserRole.CLIENT)
    f = make_user(db, UserRole.FREELANCER)
    p = make_project(db, owner)
    make_bid(db, p, f)
    assert client.get(f"{API}/projects/{p.id}/bids", headers=auth_headers(f)).status_code == 403


def test_draft_is_hidden_from_others(client, db):
    owner = make_user(db, UserRole.CLIENT)
    p = make_project(db, owner, status=ProjectStatus.draft)
    assert client.get(f"{API}/projects/{p.id}", headers=auth_headers(owner)).status_code == 200
    r = client.get(f"{API}/projects/{p.id}", headers=auth_headers(make_user(db, UserRole.FREELANCER)))
    assert r.status_code == 404


def test_cancel_via_api(client, db):
    owner = make_user(db, UserRole.CLIENT)
    p = make_project(db, owner)
    r = client.post(f"{API}/projects/{p.id}/cancel", headers=auth_headers(owner))
    assert r.json()["data"]["status"] == "cancelled"
    r = client.post(f"{API}/projects/{p.id}/cancel", headers=auth_headers(owner))
    assert r.status_code == 400


def test_list_projects(client, db):
    owner = make_user(db, UserRole.CLIENT)
    make_project(db, owner, status=ProjectStatus.draft)
    make_project(db, owner)
    viewer = make_user(db, UserRole.FREELANCER)

    r = client.get(f"{API}/projects", headers=auth_headers(viewer))
    assert r.json()["data"]["total"] == 1

    r = client.get(f"{API}/projects?mine=true", headers=auth_headers(owner))
    assert r.json()["data"]["total"] == 2
