import pytest
from fastapi.testclient import TestClient

from conftest import CHECKLIST_SCHEMA, COMPLETE_DATA, PASSWORD, PIN, TWO_SIGNERS, TestingSessionLocal, create_user
from database import get_db
from main import app
from modules.auth.schemas.auth_schemas import UserResponse


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db
client = TestClient(app)


@pytest.fixture
def accounts(session):
    return {
        "crew": create_user(session, "Tom Reyes", "crew"),
        "chief": create_user(session, "Lena Berg", "chief_officer"),
        "master": create_user(session, "Erik Holm", "master"),
        "dpa": create_user(session, "Maria Costa", "dpa"),
    }


def get_token(user):
    resp = client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


def auth_headers(user):
    return {"Authorization": f"Bearer {get_token(user)}"}


@pytest.fixture
def headers(accounts):
    return {name: auth_headers(user) for name, user in accounts.items()}


@pytest.fixture
def template_id(headers):
    resp = client.post("/templates", headers=headers["dpa"], json={
        "template_code": "PDC",
        "name": "Pre-Departure Checklist",
        "form_schema": CHECKLIST_SCHEMA,
        "required_signers": TWO_SIGNERS,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()["template_id"]


def create_submission(headers, template_id, data=None):
    resp = client.post("/submissions", headers=headers["crew"], json={
        "template_id": template_id,
        "scope_name": "Nordic Star",
        "form_data": COMPLETE_DATA if data is None else data,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_login_with_wrong_password():
    resp = client.post("/auth/login", json={"email": "nobody@fleetmail.com", "password": "x"})
    assert resp.status_code == 401


def test_me_reports_pin_setup(headers):
    resp = client.get("/auth/me", headers=headers["chief"])
    assert resp.status_code == 200
    assert resp.json()["role"] == "chief_officer"
    assert resp.json()["has_signature_pin"] is True


def test_set_signature_pin(accounts, headers):
    resp = client.put("/auth/me/pin", headers=headers["crew"], json={"pin": "97531", "current_password": PASSWORD})
    assert resp.status_code == 200, resp.text
    resp = client.put("/auth/me/pin", headers=headers["crew"], json={"pin": "12", "current_password": PASSWORD})
    assert resp.status_code == 422


def test_requests_without_token_are_refused():
    assert client.get("/submissions/pending").status_code in (401, 403)


def test_crew_cannot_manage_templates(headers):
    resp = client.post("/templates", headers=headers["crew"], json={
        "template_code": "X", "name": "X", "form_schema": CHECKLIST_SCHEMA, "required_signers": TWO_SIGNERS,
    })
    assert resp.status_code == 403


def test_template_versions_and_signers(headers, template_id):
    resp = client.get(f"/templates/{template_id}/versions/1/signers", headers=headers["crew"])
    assert resp.status_code == 200
    assert [s["role"] for s in resp.json()] == ["chief_officer", "master"]
    assert client.get(f"/templates/{template_id}/versions/7", headers=headers["crew"]).status_code == 404


def test_full_signature_workflow(headers, template_id):
    submission = create_submission(headers, template_id)
    sid = submission["id"]
    assert submission["status"] == "DRAFT"
    assert submission["submission_number"].startswith("PDC-NORDI-")

    resp = client.post(f"/submissions/{sid}/submit", headers=headers["crew"])
    assert resp.status_code == 200, resp.text
    resp = client.post(f"/submissions/{sid}/start-signing", headers=headers["crew"])
    assert resp.json()["status"] == "PENDING_SIGNATURE"
    assert resp.json()["is_locked"] is True

    pending = client.get("/submissions/pending", headers=headers["chief"]).json()
    assert [s["id"] for s in pending] == [sid]

    resp = client.post(f"/submissions/{sid}/sign", headers=headers["chief"], json={"order": 1, "pin": PIN})
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "PENDING_SIGNATURE"

    resp = client.post(f"/submissions/{sid}/sign", headers=headers["master"], json={"order": 2, "pin": "0000"})
    assert resp.status_code == 422
    assert resp.json()["detail"]["precondition"] == "valid_pin_or_auth"

    resp = client.post(f"/submissions/{sid}/sign", headers=headers["master"], json={"order": 2, "pin": PIN})
    assert resp.json()["status"] == "SIGNED"

    signatures = client.get(f"/submissions/{sid}/signatures", headers=headers["crew"]).json()
    assert [s["order"] for s in signatures] == [1, 2]
    assert client.get(f"/submissions/{sid}/integrity", headers=headers["crew"]).json()["valid"] is True
    assert client.get(f"/submissions/{sid}/actions", headers=headers["crew"]).json()["actions"] == ["amend", "archive"]


def test_error_body_carries_code(headers, template_id):
    sid = create_submission(headers, template_id)["id"]
    resp = client.post(f"/submissions/{sid}/sign", headers=headers["chief"], json={"order": 1, "pin": PIN})
    assert resp.status_code == 409
    assert resp.json()["detail"]["error"] == "not_pending"


def test_incomplete_submission_cannot_be_submitted(headers, template_id):
    sid = create_submission(headers, template_id, {"port": "Oslo"})["id"]
    resp = client.post(f"/submissions/{sid}/submit", headers=headers["crew"], json={"attachments": []})
    assert resp.status_code == 422
    assert resp.json()["detail"]["precondition"] == "form_complete"


def test_reject_and_notify_submitter(headers, template_id):
    sid = create_submission(headers, template_id)["id"]
    client.post(f"/submissions/{sid}/submit", headers=headers["crew"])
    client.post(f"/submissions/{sid}/start-signing", headers=headers["crew"])

    resp = client.post(f"/submissions/{sid}/reject", headers=headers["chief"],
                       json={"order": 1, "reason": "incomplete"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "REJECTED"
    assert resp.json()["is_locked"] is False

    notes = client.get("/notifications/me", headers=headers["crew"]).json()
    assert len(notes) == 1
    assert "incomplete" in notes[0]["message"]

    resp = client.patch(f"/notifications/{notes[0]['id']}/read", headers=headers["crew"])
    assert resp.json()["read"] is True


def test_amend_with_dpa_pin(accounts, headers, template_id):
    sid = create_submission(headers, template_id)["id"]
    client.post(f"/submissions/{sid}/submit", headers=headers["crew"])
    client.post(f"/submissions/{sid}/start-signing", headers=headers["crew"])
    client.post(f"/submissions/{sid}/sign", headers=headers["chief"], json={"order": 1, "pin": PIN})
    client.post(f"/submissions/{sid}/sign", headers=headers["master"], json={"order": 2, "pin": PIN})

    new_data = dict(COMPLETE_DATA, berth="B14")
    resp = client.post(f"/submissions/{sid}/amend", headers=headers["master"],
                       json={"form_data": new_data, "reason": "correct berth"})
    assert resp.status_code == 422
    assert resp.json()["detail"]["precondition"] == "dpa_approval"

    resp = client.post(f"/submissions/{sid}/amend", headers=headers["master"], json={
        "form_data": new_data, "reason": "correct berth",
        "dpa_user_id": accounts["dpa"].id, "dpa_pin": PIN,
    })
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "AMENDED"

    amendments = client.get(f"/submissions/{sid}/amendments", headers=headers["crew"]).json()
    assert amendments[0]["changed_fields"] == ["berth"]

    resp = client.post(f"/submissions/{sid}/re-sign", headers=headers["dpa"])
    assert resp.json()["status"] == "PENDING_SIGNATURE"
    assert resp.json()["signing_round"] == 2


def test_other_company_cannot_see_submission(session, headers, template_id):
    sid = create_submission(headers, template_id)["id"]
    outsider = create_user(session, "Ola Nord", "master", company_id=2)
    resp = client.get(f"/submissions/{sid}", headers=auth_headers(outsider))
    assert resp.status_code == 404


def signed_submission_id(headers, template_id):
    sid = create_submission(headers, template_id)["id"]
    client.post(f"/submissions/{sid}/submit", headers=headers["crew"])
    client.post(f"/submissions/{sid}/start-signing", headers=headers["crew"])
    client.post(f"/submissions/{sid}/sign", headers=headers["chief"], json={"order": 1, "pin": PIN})
    resp = client.post(f"/submissions/{sid}/sign", headers=headers["master"], json={"order": 2, "pin": PIN})
    assert resp.json()["status"] == "SIGNED"
    return sid


def test_crew_cannot_archive(headers, template_id):
    sid = signed_submission_id(headers, template_id)
    resp = client.post(f"/submissions/{sid}/archive", headers=headers["crew"])
    assert resp.status_code == 403
    assert client.get(f"/submissions/{sid}", headers=headers["crew"]).json()["status"] == "SIGNED"

    resp = client.post(f"/submissions/{sid}/archive", headers=headers["master"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "ARCHIVED"


def test_cannot_mark_another_users_notification_read(headers, template_id):
    sid = create_submission(headers, template_id)["id"]
    client.post(f"/submissions/{sid}/submit", headers=headers["crew"])

    notes = client.get("/notifications/me", headers=headers["chief"]).json()
    assert len(notes) == 1
    resp = client.patch(f"/notifications/{notes[0]['id']}/read", headers=headers["crew"])
    assert resp.status_code == 404
    assert client.get("/notifications/me", headers=headers["chief"]).json()[0]["read"] is False

    resp = client.patch(f"/notifications/{notes[0]['id']}/read", headers=headers["chief"])
    assert resp.json()["read"] is True


def test_user_response_reads_orm_attributes(accounts):
    response = UserResponse.model_validate(accounts["dpa"])
    assert response.role == "dpa"
    assert response.email == "maria.costa@fleetmail.com"
