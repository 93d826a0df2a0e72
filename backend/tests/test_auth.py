from models.log import Log

# HTTPBearer answers a missing header with 401 or 403 depending on the FastAPI release
UNAUTHENTICATED = (401, 403)


def _register(client, **overrides):
    body = {
        "email": "New.User@Example.com",
        "password": "hunter22",
        "first_name": "New",
        "last_name": "User",
    }
    body.update(overrides)
    return client.post("/register", json=body)


def test_register_login_me(client):
    r = _register(client, phone="555-1234")
    assert r.status_code == 201, r.text
    assert r.json()["email"] == "new.user@example.com"
    assert r.json()["role"] == "customer"

    r = client.post("/login", json={"email": "new.user@example.com", "password": "hunter22"})
    assert r.status_code == 200
    token = r.json()["access_token"]

    me = client.get("/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["email"] == "new.user@example.com"
    assert me["phone"] == "555-1234"


def test_duplicate_email_conflicts(client, db_session):
    _register(client)
    r = _register(client, email="new.user@example.com")
    assert r.status_code == 409
    assert r.json() == {"success": False, "message": "Email already registered"}
    assert db_session.query(Log).filter(Log.action == "REGISTER", Log.status == "FAIL").count() == 1


def test_drivers_may_self_register_but_admins_may_not(client):
    assert _register(client, email="driver@example.com", role="delivery").json()["role"] == "delivery"
    assert _register(client, email="boss@example.com", role="admin").status_code == 400


def test_bad_password_is_unauthorized(client, customer):
    r = client.post("/login", json={"email": customer.email, "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json()["success"] is False


def test_protected_routes_need_a_token(client):
    assert client.get("/me").status_code in UNAUTHENTICATED
    assert client.get("/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_admin_user_management(client, auth_headers, admin, customer):
    headers = auth_headers(admin)

    page = client.get("/users?role=customer", headers=headers).json()
    assert [u["id"] for u in page["items"]] == [customer.id]

    r = client.put(f"/users/{customer.id}/role", json={"role": "delivery"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["role"] == "delivery"

    assert client.put(f"/users/{customer.id}/role", json={"role": "wizard"}, headers=headers).status_code == 400
    assert client.delete(f"/users/{admin.id}", headers=headers).status_code == 400
    assert client.delete(f"/users/{customer.id}", headers=headers).status_code == 200
    assert client.get("/users", headers=auth_headers(admin)).json()["total"] == 1


def test_non_admins_cannot_manage_users(client, auth_headers, customer):
    assert client.get("/users", headers=auth_headers(customer)).status_code == 403
    assert client.get("/logs", headers=auth_headers(customer)).status_code == 403


def test_customer_with_orders_cannot_be_deleted(client, auth_headers, admin, customer, place_order, restaurant, make_menu_item):
    pizza = make_menu_item(restaurant)
    place_order([(pizza, 1)])

    r = client.delete(f"/users/{customer.id}", headers=auth_headers(admin))
    assert r.status_code == 409


def test_audit_log_filters(client, auth_headers, admin, customer):
    client.post("/login", json={"email": customer.email, "password": "secret123"})
    client.post("/login", json={"email": customer.email, "password": "nope"})

    headers = auth_headers(admin)
    fails = client.get("/logs?action=LOGIN&status=fail", headers=headers).json()
    assert fails["total"] == 1
    assert fails["items"][0]["user_id"] == customer.id

    assert client.get(f"/logs?user_id={customer.id}", headers=headers).json()["total"] == 2
