from models.token import RevokedToken
from models.users import User


def _login(client, email, password="secret123"):
    return client.post("/login", json={"email": email, "password": password})


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_profile_read_and_update(client, auth_headers, customer):
    headers = auth_headers(customer)
    assert client.get("/users/profile", headers=headers).json()["email"] == customer.email

    r = client.put("/users/profile", json={"first_name": "Carlotta", "phone": "555-0101"}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["first_name"] == "Carlotta"
    assert r.json()["last_name"] == "Customer"
    assert r.json()["phone"] == "555-0101"


def test_phone_number_belongs_to_one_account(client, auth_headers, customer, make_user):
    other = make_user()
    client.put("/users/profile", json={"phone": "555-0102"}, headers=auth_headers(other))

    r = client.put("/users/profile", json={"phone": "555-0102"}, headers=auth_headers(customer))
    assert r.status_code == 409
    assert r.json()["message"] == "Phone number already exists"


def test_change_password(client, auth_headers, customer):
    headers = auth_headers(customer)

    r = client.put("/users/change-password", json={"current_password": "wrong-one", "new_password": "brand-new"},
                   headers=headers)
    assert r.status_code == 401
    r = client.put("/users/change-password", json={"current_password": "secret123", "new_password": "secret123"},
                   headers=headers)
    assert r.status_code == 400

    r = client.put("/users/change-password", json={"current_password": "secret123", "new_password": "brand-new"},
                   headers=headers)
    assert r.status_code == 200
    assert _login(client, customer.email).status_code == 401
    assert _login(client, customer.email, "brand-new").status_code == 200


def test_logout_revokes_only_that_token(client, customer, db_session):
    first = _login(client, customer.email).json()["access_token"]
    second = _login(client, customer.email).json()["access_token"]

    assert client.post("/logout", headers=_bearer(first)).status_code == 200

    r = client.get("/me", headers=_bearer(first))
    assert r.status_code == 401
    assert r.json()["message"] == "Token has been revoked"
    assert client.get("/me", headers=_bearer(second)).status_code == 200
    assert db_session.query(RevokedToken).filter(RevokedToken.user_id == customer.id).count() == 1


def test_deactivate_and_reactivate(client, auth_headers, customer, admin, db_session):
    token = _login(client, customer.email).json()["access_token"]

    r = client.request("DELETE", "/users/deactivate", json={"password": "nope"}, headers=_bearer(token))
    assert r.status_code == 401

    r = client.request("DELETE", "/users/deactivate", json={"password": "secret123"}, headers=_bearer(token))
    assert r.status_code == 200
    assert db_session.query(User).filter(User.id == customer.id).one().is_active is False

    assert client.get("/me", headers=_bearer(token)).status_code == 401
    assert _login(client, customer.email).status_code == 403

    inactive = client.get("/users?is_active=false", headers=auth_headers(admin)).json()
    assert [u["id"] for u in inactive["items"]] == [customer.id]

    r = client.put(f"/users/{customer.id}/reactivate", headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json()["is_active"] is True
    assert client.put(f"/users/{customer.id}/reactivate", headers=auth_headers(admin)).status_code == 400
    assert _login(client, customer.email).status_code == 200


def test_only_admins_reactivate(client, auth_headers, customer, make_user):
    assert client.put(f"/users/{customer.id}/reactivate", headers=auth_headers(make_user())).status_code == 403
