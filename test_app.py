"""HTTP tests: JSON routes, session auth, error rendering.

Service rules are covered in test_services.py; these tests check that the
routes wire them up and render failures with the right status and kind.
"""

import pytest

from conftest import TEST_PASSWORD
from models import Property
from services.uow import run_in_transaction


def register_via_api(client, email, **extra):
    payload = {"email": email, "password": TEST_PASSWORD, "first_name": "Olivia", **extra}
    return client.post("/api/auth/register", json=payload)


@pytest.fixture
def owner_client(app, client):
    """Client logged in as an owner on the discovery plan."""
    assert register_via_api(client, "owner@example.com").status_code == 201
    assert client.post("/api/subscriptions", json={"plan": "discovery"}).status_code == 201
    return client


@pytest.fixture
def property_id(owner_client):
    resp = owner_client.post(
        "/api/properties",
        json={"address": "1 Long Street", "rental_type": "long_term", "rent_amount": "900"},
    )
    assert resp.status_code == 201
    return resp.get_json()["id"]


class TestAppCreation:
    def test_app_exists(self, app):
        assert app is not None
        assert app.config["TESTING"] is True

    def test_blueprints_registered(self, app):
        for name in ("auth", "properties", "subscriptions", "solvency", "invitations", "leases"):
            assert name in app.blueprints

    def test_security_headers(self, client):
        resp = client.get("/api/subscriptions/plans")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"

    def test_unknown_route_is_json(self, client):
        resp = client.get("/api/nope")
        assert resp.status_code == 404
        assert resp.get_json()["kind"] == "not_found"


class TestAuthRoutes:
    def test_register_and_me(self, client):
        resp = register_via_api(client, "new@example.com")
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["current_context"] == "owner"
        assert body["user"]["email"] == "new@example.com"
        assert body["capabilities"]["can_act_as_tenant"] is False

        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.get_json()["user"]["email"] == "new@example.com"

    def test_logout(self, client):
        register_via_api(client, "bye@example.com")
        assert client.post("/api/auth/logout").status_code == 200
        assert client.get("/api/auth/me").status_code == 401

    def test_login(self, app, client):
        register_via_api(client, "login@example.com")
        client.post("/api/auth/logout")

        bad = client.post("/api/auth/login", json={"email": "login@example.com", "password": "nope"})
        assert bad.status_code == 401
        assert bad.get_json()["kind"] == "authentication"

        ok = client.post(
            "/api/auth/login", json={"email": "login@example.com", "password": TEST_PASSWORD}
        )
        assert ok.status_code == 200
        assert client.get("/api/auth/me").status_code == 200

    def test_duplicate_registration(self, client):
        register_via_api(client, "dup@example.com")
        resp = register_via_api(client, "dup@example.com")
        assert resp.status_code == 409
        assert resp.get_json()["kind"] == "conflict"
        assert client.get("/api/auth/me").status_code == 200

    def test_login_required(self, client):
        resp = client.get("/api/properties")
        assert resp.status_code == 401
        assert resp.get_json()["kind"] == "authentication"

    def test_switch_context_without_tenancy(self, owner_client):
        resp = owner_client.post("/api/auth/switch-context", json={"context": "tenant"})
        assert resp.status_code == 403
        assert resp.get_json()["kind"] == "capability"

    def test_csrf_enforced_when_enabled(self, app, client):
        app.config["WTF_CSRF_ENABLED"] = True
        resp = client.post("/api/auth/login", json={"email": "a@example.com", "password": "x"})
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "csrf"

    def test_csrf_token_endpoint(self, client):
        resp = client.get("/api/auth/csrf")
        assert resp.status_code == 200
        assert resp.get_json()["csrf_token"]


class TestPropertyRoutes:
    def test_requires_subscription(self, client):
        register_via_api(client, "nosub@example.com")
        resp = client.post("/api/properties", json={"address": "x", "rental_type": "long_term"})
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["kind"] == "invalid_state"
        assert body["reason"] == "no_active_subscription"

    def test_quota_exceeded(self, owner_client, property_id):
        resp = owner_client.post(
            "/api/properties", json={"address": "2 Long Street", "rental_type": "long_term"}
        )
        assert resp.status_code == 403
        body = resp.get_json()
        assert body["kind"] == "quota_exceeded"
        assert body["limit"] == 1
        assert body["current"] == 1

    def test_list_update_delete(self, owner_client, property_id):
        listing = owner_client.get("/api/properties").get_json()
        assert [p["id"] for p in listing] == [property_id]
        assert listing[0]["vacancy_credits"] == 20
        assert listing[0]["rent_amount"] == "900.00"

        patched = owner_client.patch(f"/api/properties/{property_id}", json={"name": "Flat A"})
        assert patched.status_code == 200
        assert patched.get_json()["name"] == "Flat A"

        assert owner_client.delete(f"/api/properties/{property_id}").status_code == 204
        gone = owner_client.get(f"/api/properties/{property_id}")
        assert gone.status_code == 403
        assert gone.get_json()["kind"] == "access_denied"

    def test_invalid_rental_type(self, owner_client):
        resp = owner_client.post("/api/properties", json={"address": "x", "rental_type": "hotel"})
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation"


class TestSubscriptionRoutes:
    def test_plans_are_public(self, client):
        plans = {p["plan_type"]: p for p in client.get("/api/subscriptions/plans").get_json()}
        assert plans["premium"]["max_properties"] == 5
        assert plans["serenity"]["yearly_price"] == "99.00"

    def test_subscribe_and_raise_limit(self, client):
        register_via_api(client, "prem@example.com")
        resp = client.post("/api/subscriptions", json={"plan": "premium", "frequency": "yearly"})
        assert resp.status_code == 201
        assert resp.get_json()["subscription"]["frequency"] == "yearly"

        raised = client.post("/api/subscriptions/limit", json={"additional_slots": 3})
        assert raised.get_json()["subscription"]["max_properties_limit"] == 8

    def test_cancel(self, owner_client):
        assert owner_client.delete("/api/subscriptions").status_code == 200
        assert owner_client.get("/api/subscriptions").get_json()["subscription"] is None


class TestSolvencyRoutes:
    def test_check_lifecycle(self, owner_client, property_id):
        resp = owner_client.post(
            "/api/solvency/checks",
            json={"property_id": property_id, "candidate_email": "cand@example.com"},
        )
        assert resp.status_code == 201
        check = resp.get_json()
        assert check["credit_source"] == "property"

        assert len(owner_client.get("/api/solvency/checks").get_json()) == 1
        assert len(owner_client.get(f"/api/properties/{property_id}/checks").get_json()) == 1

        cancelled = owner_client.post(f"/api/solvency/checks/{check['id']}/cancel")
        assert cancelled.get_json()["status"] == "cancelled"
        again = owner_client.post(f"/api/solvency/checks/{check['id']}/cancel")
        assert again.status_code == 409
        assert again.get_json()["reason"] == "already_processed"

    def test_insufficient_credits_payload(self, owner_client):
        prop = owner_client.post(
            "/api/properties", json={"address": "Beach", "rental_type": "seasonal"}
        ).get_json()

        def drain(store):
            store.session.get(Property, prop["id"]).vacancy_credits = 0

        run_in_transaction(drain)
        resp = owner_client.post(
            "/api/solvency/checks",
            json={"property_id": prop["id"], "candidate_email": "cand@example.com"},
        )
        assert resp.status_code == 402
        body = resp.get_json()
        assert body["kind"] == "insufficient_credits"
        assert body["property_balance"] == 0
        assert body["global_balance"] == 0

    def test_buy_credits(self, owner_client):
        resp = owner_client.post("/api/solvency/credits", json={"pack_type": "pack_20"})
        assert resp.status_code == 201
        assert resp.get_json() == {"credits_added": 20, "balance": 20}
        assert owner_client.get("/api/solvency/credits").get_json()["balance"] == 20

    def test_open_banking_callback_skips_csrf(self, app, owner_client, property_id):
        check = owner_client.post(
            "/api/solvency/checks",
            json={"property_id": property_id, "candidate_email": "cand@example.com"},
        ).get_json()
        token = run_in_transaction(
            lambda store: store.get_check_for_update(check["id"]).token
        )

        landing = app.test_client().get(f"/api/solvency/public/{token}")
        assert landing.get_json()["property_address"] == "1 Long Street"

        app.config["WTF_CSRF_ENABLED"] = True
        resp = app.test_client().post(
            f"/api/solvency/callback/{token}",
            json={"transactions": [{"amount": 3000}, {"amount": 3000}, {"amount": 3000}]},
        )
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "approved", "score_result": 3000}


class TestInvitationRoutes:
    def test_invite_register_and_switch(self, app, owner_client, property_id):
        resp = owner_client.post(
            "/api/invitations",
            json={
                "property_id": property_id,
                "email": "tenant@example.com",
                "terms": {"rent_amount": "950", "payment_day": 3},
            },
        )
        assert resp.status_code == 201
        token = resp.get_json()["token"]

        tenant = app.test_client()
        landing = tenant.get(f"/api/invitations/{token}")
        assert landing.status_code == 200
        assert landing.get_json()["rent_amount"] == "950.00"

        registered = register_via_api(tenant, "tenant@example.com", invite_token=token)
        assert registered.status_code == 201
        body = registered.get_json()
        assert body["current_context"] == "tenant"
        assert body["capabilities"]["can_act_as_tenant"] is True

        leases = tenant.get("/api/leases").get_json()
        assert len(leases) == 1
        assert leases[0]["payment_day"] == 3
        assert tenant.get(f"/api/leases/{leases[0]['id']}").status_code == 200

        assert tenant.post("/api/auth/switch-context", json={"context": "owner"}).status_code == 200
        assert tenant.get("/api/auth/me").get_json()["current_context"] == "owner"

        reused = tenant.post(f"/api/invitations/{token}/accept")
        assert reused.status_code == 409
        assert reused.get_json()["reason"] == "not_pending"

    def test_bad_terms(self, owner_client, property_id):
        resp = owner_client.post(
            "/api/invitations",
            json={"property_id": property_id, "email": "t@example.com",
                  "terms": {"payment_day": 40}},
        )
        assert resp.status_code == 400

    def test_unknown_token(self, client):
        resp = client.get("/api/invitations/unknown")
        assert resp.status_code == 404
        assert resp.get_json()["reason"] == "invalid"


class TestCommands:
    def test_grant_credits(self, app, make_user):
        make_user(email="ops@example.com")
        result = app.test_cli_runner().invoke(args=["grant-credits", "ops@example.com", "7"])
        assert result.exit_code == 0
        assert "balance is now 7" in result.output

    def test_grant_credits_unknown_user(self, app):
        result = app.test_cli_runner().invoke(args=["grant-credits", "ghost@example.com", "7"])
        assert result.exit_code == 1

    def test_grant_credits_rejects_zero(self, app, make_user):
        make_user(email="ops@example.com")
        result = app.test_cli_runner().invoke(args=["grant-credits", "ops@example.com", "0"])
        assert result.exit_code != 0

    def test_expire_invitations(self, app):
        result = app.test_cli_runner().invoke(args=["expire-invitations"])
        assert result.exit_code == 0
        assert "Expired 0 invitation(s)." in result.output


class TestMalformedRequests:
    def test_nan_literal_rent(self, owner_client):
        resp = owner_client.post(
            "/api/properties",
            data='{"address": "1 Long Street", "rental_type": "long_term", "rent_amount": NaN}',
            content_type="application/json",
        )
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation"

    def test_non_text_address(self, owner_client):
        resp = owner_client.post("/api/properties", json={"address": 5, "rental_type": "long_term"})
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation"

    def test_invitation_terms_shapes(self, owner_client, property_id):
        for terms in (["x"], {"rent_amount": "NaN"}, {"special_clauses": "no pets"}):
            resp = owner_client.post(
                "/api/invitations",
                json={"property_id": property_id, "email": "t@example.com", "terms": terms},
            )
            assert resp.status_code == 400
            assert resp.get_json()["kind"] == "validation"

    def test_non_text_invitation_email(self, owner_client, property_id):
        resp = owner_client.post(
            "/api/invitations", json={"property_id": property_id, "email": 42}
        )
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation"

    def test_nan_bank_amount(self, app, owner_client, property_id):
        check = owner_client.post(
            "/api/solvency/checks",
            json={"property_id": property_id, "candidate_email": "cand@example.com"},
        ).get_json()
        token = run_in_transaction(
            lambda store: store.get_check_for_update(check["id"]).token
        )
        resp = app.test_client().post(
            f"/api/solvency/callback/{token}",
            data='{"transactions": [{"amount": NaN}]}',
            content_type="application/json",
        )
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation"
