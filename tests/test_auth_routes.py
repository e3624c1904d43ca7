import pytest

from models.user import User
from security.password import verify_password
from services.accounts import SqlAccountStore

EMAIL = "user@example.com"
PASSWORD = "correct horse battery"


def request_code(client, purpose):
    resp = client.post("/otp", json={"action": "request", "email": EMAIL, "purpose": purpose})
    assert resp.status_code == 200


def test_register_with_signup_code(client, notifier):
    request_code(client, "signup")
    resp = client.post("/auth/register", json={"email": EMAIL, "password": PASSWORD, "code": notifier.last_code})

    assert resp.status_code == 201
    user = User.query.filter_by(email=EMAIL).one()
    assert verify_password(PASSWORD, user.password_hash)


def test_register_rejects_wrong_code(client, notifier):
    request_code(client, "signup")
    wrong = "000000" if notifier.last_code != "000000" else "111111"
    resp = client.post("/auth/register", json={"email": EMAIL, "password": PASSWORD, "code": wrong})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid or expired code."
    assert User.query.count() == 0


def test_register_does_not_accept_reset_code(client, notifier):
    request_code(client, "password_reset")
    resp = client.post("/auth/register", json={"email": EMAIL, "password": PASSWORD, "code": notifier.last_code})
    assert resp.status_code == 400


def test_register_existing_account(client, notifier):
    SqlAccountStore().create_account(EMAIL, PASSWORD)
    request_code(client, "signup")
    resp = client.post("/auth/register", json={"email": EMAIL, "password": PASSWORD, "code": notifier.last_code})
    assert resp.status_code == 409


def test_register_checks_password_policy_before_code(client, notifier):
    request_code(client, "signup")
    resp = client.post("/auth/register", json={"email": EMAIL, "password": "short", "code": notifier.last_code})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Password does not meet policy"

    # the code was not spent
    resp = client.post("/auth/register", json={"email": EMAIL, "password": PASSWORD, "code": notifier.last_code})
    assert resp.status_code == 201


@pytest.mark.parametrize("payload", [
    {},
    {"email": EMAIL, "password": PASSWORD},
    {"email": EMAIL, "code": "123456"},
])
def test_register_missing_fields(client, payload):
    assert client.post("/auth/register", json=payload).status_code == 400


def test_reset_password_with_code(client, notifier):
    SqlAccountStore().create_account(EMAIL, "old password 123")
    request_code(client, "password_reset")

    resp = client.post("/auth/reset_password",
                       json={"email": EMAIL, "code": notifier.last_code, "new_password": PASSWORD})
    assert resp.status_code == 200

    user = User.query.filter_by(email=EMAIL).one()
    assert verify_password(PASSWORD, user.password_hash)

    # one-shot: the same code cannot reset again
    resp = client.post("/auth/reset_password",
                       json={"email": EMAIL, "code": notifier.last_code, "new_password": "another password"})
    assert resp.status_code == 400


def test_reset_password_without_account(client, notifier):
    request_code(client, "password_reset")
    resp = client.post("/auth/reset_password",
                       json={"email": EMAIL, "code": notifier.last_code, "new_password": PASSWORD})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "No account found with this email."
