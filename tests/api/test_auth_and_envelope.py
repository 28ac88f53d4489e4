"""
Authentication, role guards and the {code, message, data} envelope.
"""
from tests.conftest import PASSWORD, UserFactory, auth_headers


class TestLogin:

    def test_login_returns_token(self, client, nurse_user):
        res = client.post("/api/auth/login", json={"username": "nurse1", "password": PASSWORD})
        assert res.status_code == 200
        body = res.json()
        assert body["code"] == 200
        assert body["message"] == "success"
        assert body["data"]["role"] == "NURSE"
        token = body["data"]["access_token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["data"]["username"] == "nurse1"

    def test_wrong_password(self, client, nurse_user):
        res = client.post("/api/auth/login", json={"username": "nurse1", "password": "nope"})
        assert res.status_code == 401
        assert res.json() == {"code": 401, "message": "Invalid username or password", "data": None}

    def test_inactive_user(self, client, db):
        UserFactory(username="gone", is_active=False)
        res = client.post("/api/auth/login", json={"username": "gone", "password": PASSWORD})
        assert res.status_code == 401


class TestGuards:

    def test_missing_token(self, client):
        res = client.get("/api/charges")
        assert res.status_code == 401
        assert res.json()["code"] == 401

    def test_garbage_token(self, client):
        res = client.get("/api/charges", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401

    def test_wrong_role(self, client, nurse_user):
        res = client.get("/api/charges", headers=auth_headers(nurse_user))
        assert res.status_code == 403
        assert res.json()["code"] == 403

    def test_admin_passes_every_role(self, client, admin_user):
        res = client.get("/api/charges", headers=auth_headers(admin_user))
        assert res.status_code == 200
        assert res.json()["data"]["total"] == 0

    def test_audit_logs_admin_only(self, client, cashier_user, admin_user):
        assert client.get("/api/audit-logs", headers=auth_headers(cashier_user)).status_code == 403
        assert client.get("/api/audit-logs", headers=auth_headers(admin_user)).status_code == 200


class TestErrors:

    def test_not_found(self, client, cashier_user):
        res = client.get("/api/charges/999", headers=auth_headers(cashier_user))
        assert res.status_code == 404
        assert res.json()["message"] == "Charge not found: 999"

    def test_request_validation(self, client, cashier_user):
        res = client.post("/api/charges/1/pay",
                          json={"payment_method": 1, "paid_amount": "-5"},
                          headers=auth_headers(cashier_user))
        assert res.status_code == 400
        body = res.json()
        assert body["code"] == 400
        assert body["message"].startswith("Validation error")
        assert any(e["field"] == "paid_amount" for e in body["data"])

    def test_unknown_payment_method(self, client, cashier_user):
        res = client.post("/api/charges/1/pay",
                          json={"payment_method": 9, "paid_amount": "5"},
                          headers=auth_headers(cashier_user))
        assert res.status_code == 400


class TestBasicData:

    def test_departments_and_doctors(self, client, doctor, nurse_user):
        headers = auth_headers(nurse_user)
        depts = client.get("/api/basic/departments", headers=headers).json()["data"]
        assert [d["id"] for d in depts] == [doctor.department_id]

        docs = client.get("/api/basic/doctors",
                          params={"department_id": doctor.department_id},
                          headers=headers).json()["data"]
        assert [d["id"] for d in docs] == [doctor.id]
