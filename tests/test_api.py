"""
API tests: zone gating, onboarding, dashboard, admin review and SMS opt-in.
"""

import pytest

from leadline.models import Business


def onboarding_payload(**info_overrides):
    info = {
        "name": "Cool Air Co",
        "address": "100 Main St",
        "city": "Austin",
        "state": "TX",
        "zipCode": "78701",
        "phoneNumber": "(512) 555-0199",
        "ownerPhone": "512-555-0100",
        "serviceAreas": ["Austin", " Round Rock ", ""],
        "businessHours": {"open": "08:00", "close": "17:00", "days": ["mon", "tue"]},
        "departments": ["Service", "Sales"],
        "forwardToEmail": "Dispatch@CoolAir.com",
    }
    info.update(info_overrides)
    return {"industry": "HVAC", "businessInfo": info}


class TestAccessEndpoint:
    def test_anonymous_dashboard(self, client):
        response = client.get("/api/access/dashboard")
        assert response.status_code == 200
        assert response.json() == {
            "zone": "dashboard",
            "allowed": False,
            "reason": "NOT_AUTHENTICATED",
            "redirectTo": "/sign-in",
        }

    def test_new_user_onboarding_allowed_dashboard_denied(self, client, make_user, sign_in):
        sign_in(make_user())
        assert client.get("/api/access/onboarding").json()["allowed"] is True
        dashboard = client.get("/api/access/dashboard").json()
        assert dashboard["reason"] == "ONBOARDING_REQUIRED"
        assert dashboard["redirectTo"] == "/onboarding"

    @pytest.mark.parametrize("token", ["not-a-jwt", "abc.def", "Zm9v.YmFy.YmF6"])
    def test_unverifiable_token_is_not_authenticated(self, client, token):
        from leadline.auth import get_optional_user
        from leadline.main import app

        del app.dependency_overrides[get_optional_user]
        headers = {"Authorization": f"Bearer {token}"}

        decision = client.get("/api/access/dashboard", headers=headers).json()
        assert decision["reason"] == "NOT_AUTHENTICATED"
        assert decision["redirectTo"] == "/sign-in"

        guarded = client.get("/api/dashboard", headers=headers)
        assert guarded.status_code == 401
        assert guarded.json()["detail"]["error"] == "NOT_AUTHENTICATED"

    def test_unknown_zone(self, client):
        assert client.get("/api/access/billing").status_code == 404

    def test_me_reports_every_zone(self, client, make_user, make_business, sign_in):
        sign_in(make_user(business=make_business(onboarding_complete=True)))
        body = client.get("/api/me").json()
        assert body["access"]["dashboard"]["allowed"] is True
        assert body["access"]["onboarding"]["allowed"] is True
        assert body["access"]["admin"]["reason"] == "NOT_ADMIN"

    def test_me_requires_auth(self, client):
        assert client.get("/api/me").status_code == 401


class TestDashboardGate:
    def test_unauthenticated(self, client):
        response = client.get("/api/dashboard")
        assert response.status_code == 401
        assert response.json()["detail"] == {
            "error": "NOT_AUTHENTICATED",
            "redirectTo": "/sign-in",
        }
        assert response.headers["X-Redirect-To"] == "/sign-in"

    def test_without_business(self, client, make_user, sign_in):
        sign_in(make_user())
        response = client.get("/api/dashboard")
        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "ONBOARDING_REQUIRED"
        assert response.headers["X-Redirect-To"] == "/onboarding"

    def test_incomplete_business(self, client, make_user, make_business, sign_in):
        sign_in(make_user(business=make_business(onboarding_complete=False)))
        assert client.get("/api/dashboard").json()["detail"]["error"] == "ONBOARDING_REQUIRED"

    def test_dangling_business(self, client, make_user, sign_in):
        sign_in(make_user(business_id=424242))
        assert client.get("/api/dashboard").status_code == 403

    def test_complete_business(self, client, make_user, make_business, sign_in):
        business = make_business(onboarding_complete=True)
        sign_in(make_user(business=business))
        response = client.get("/api/dashboard")
        assert response.status_code == 200
        body = response.json()
        assert body["business"]["id"] == business.id
        assert body["business"]["industry"]["label"] == "HVAC"

    def test_security_headers_present(self, client):
        response = client.get("/api/dashboard")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"


class TestOnboarding:
    def test_industries_public(self, client):
        body = client.get("/api/industries").json()
        assert [i["code"] for i in body] == [
            "HVAC",
            "PLUMBING",
            "AUTO_REPAIR",
            "CHILDCARE",
            "ELECTRICIAN",
            "GENERIC",
        ]

    def test_requires_auth(self, client):
        assert client.post("/api/onboarding", json=onboarding_payload()).status_code == 401

    def test_missing_fields(self, client, make_user, sign_in):
        sign_in(make_user())
        response = client.post("/api/onboarding", json={"industry": "HVAC"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required fields"

    def test_unknown_industry(self, client, make_user, sign_in):
        sign_in(make_user())
        payload = onboarding_payload()
        payload["industry"] = "LANDSCAPING"
        assert client.post("/api/onboarding", json=payload).status_code == 400

    def test_invalid_phone(self, client, make_user, sign_in):
        sign_in(make_user())
        response = client.post("/api/onboarding", json=onboarding_payload(phoneNumber="555-01"))
        assert response.status_code == 400

    def test_simple_setup_completes_onboarding(self, client, db_session, make_user, sign_in):
        user = sign_in(make_user())
        response = client.post("/api/onboarding", json=onboarding_payload())
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["requiresManualSetup"] is False

        business = body["business"]
        assert business["onboardingComplete"] is True
        assert business["serviceAreas"] == ["Austin", "Round Rock"]
        assert business["businessLinePhone"] == "+15125550199"
        assert business["forwardToEmail"] == "dispatch@coolair.com"

        db_session.refresh(user)
        assert user.business_id == business["id"]
        assert user.phone_number == "+15125550100"

        assert client.get("/api/dashboard").status_code == 200

    def test_city_used_when_no_service_areas(self, client, make_user, sign_in):
        sign_in(make_user())
        payload = onboarding_payload()
        del payload["businessInfo"]["serviceAreas"]
        body = client.post("/api/onboarding", json=payload).json()
        assert body["business"]["serviceAreas"] == ["Austin"]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"multiLocation": True},
            {"customScript": True},
            {"serviceAreas": ["Austin", "Round Rock", "Cedar Park", "Pflugerville"]},
        ],
    )
    def test_complex_setup_needs_manual_review(self, client, make_user, sign_in, overrides):
        sign_in(make_user())
        body = client.post("/api/onboarding", json=onboarding_payload(**overrides)).json()
        assert body["requiresManualSetup"] is True
        assert body["business"]["onboardingComplete"] is False

        # Mid-onboarding users keep access to onboarding but not the dashboard
        assert client.get("/api/onboarding").status_code == 200
        assert client.get("/api/dashboard").status_code == 403

    def test_resubmission_updates_same_business(self, client, db_session, make_user, sign_in):
        sign_in(make_user())
        first = client.post("/api/onboarding", json=onboarding_payload(customScript=True)).json()
        second = client.post("/api/onboarding", json=onboarding_payload(name="Cooler Air")).json()
        assert first["business"]["id"] == second["business"]["id"]
        assert second["business"]["name"] == "Cooler Air"
        assert second["requiresManualSetup"] is False
        assert db_session.query(Business).count() == 1

    def test_status(self, client, make_user, make_business, sign_in):
        business = make_business(requires_manual_setup=True)
        sign_in(make_user(business=business))
        body = client.get("/api/onboarding").json()
        assert body["businessId"] == business.id
        assert body["onboardingComplete"] is False
        assert body["requiresManualSetup"] is True


class TestBusinessUpdate:
    def test_applies_only_sent_fields(self, client, make_user, make_business, sign_in):
        business = make_business(
            onboarding_complete=True, city="Austin", business_line_phone="+15125550199"
        )
        sign_in(make_user(business=business))

        response = client.patch(
            "/api/business",
            json={"name": "  Cool Air Pros ", "serviceAreas": [" Austin", "", "Pflugerville "]},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["business"]["name"] == "Cool Air Pros"
        assert body["business"]["serviceAreas"] == ["Austin", "Pflugerville"]
        assert body["business"]["city"] == "Austin"
        assert body["business"]["businessLinePhone"] == "+15125550199"
        assert body["business"]["industry"]["code"] == "HVAC"

    def test_blank_name_and_null_fields(self, client, make_user, make_business, sign_in):
        business = make_business(onboarding_complete=True, address="100 Main St")
        sign_in(make_user(business=business))

        body = client.patch(
            "/api/business", json={"name": "   ", "address": "  ", "serviceAreas": None}
        ).json()

        assert body["business"]["name"] == "Cool Air Co"
        assert body["business"]["address"] is None
        assert body["business"]["serviceAreas"] == []

    def test_phones_email_and_hours_normalized(self, client, make_user, make_business, sign_in):
        sign_in(make_user(business=make_business(onboarding_complete=True)))

        body = client.patch(
            "/api/business",
            json={
                "phoneNumber": "(512) 555-0142",
                "afterHoursEmergencyPhone": "",
                "forwardToEmail": " Ops@CoolAir.com ",
                "businessHours": {"days": ["sat"]},
            },
        ).json()["business"]

        assert body["businessLinePhone"] == "+15125550142"
        assert body["afterHoursEmergencyPhone"] is None
        assert body["forwardToEmail"] == "ops@coolair.com"
        assert body["businessHours"] == {"open": "09:00", "close": "17:00", "days": ["sat"]}

    @pytest.mark.parametrize(
        "payload",
        [
            {"phoneNumber": "12345"},
            {"afterHoursEmergencyPhone": "call me"},
            {"forwardToEmail": "not-an-email"},
            {"industry": "ASTROLOGY"},
        ],
    )
    def test_invalid_values_rejected(
        self, client, make_user, make_business, sign_in, db_session, payload
    ):
        business = make_business(onboarding_complete=True, business_line_phone="+15125550199")
        sign_in(make_user(business=business))

        response = client.patch("/api/business", json={"name": "Renamed", **payload})

        assert response.status_code == 400
        db_session.refresh(business)
        assert business.name == "Cool Air Co"
        assert business.business_line_phone == "+15125550199"
        assert business.industry == "HVAC"

    def test_change_industry(self, client, make_user, make_business, sign_in):
        sign_in(make_user(business=make_business(onboarding_complete=True)))
        body = client.patch("/api/business", json={"industry": "PLUMBING"}).json()
        assert body["business"]["industry"]["code"] == "PLUMBING"

    def test_review_flags_survive_edits(
        self, client, make_user, make_business, admin_user, sign_in
    ):
        business = make_business(
            requires_manual_setup=True, onboarding_complete=False, multi_location=True
        )
        owner = make_user(business=business)

        sign_in(admin_user)
        client.post(f"/api/admin/businesses/{business.id}/complete-setup")

        sign_in(owner)
        body = client.patch(
            "/api/business", json={"serviceAreas": ["A", "B", "C", "D", "E"]}
        ).json()["business"]

        assert body["onboardingComplete"] is True
        assert body["requiresManualSetup"] is False
        assert client.get("/api/dashboard").status_code == 200

    def test_anonymous(self, client):
        response = client.patch("/api/business", json={"name": "x"})
        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "NOT_AUTHENTICATED"

    def test_incomplete_onboarding(self, client, make_user, make_business, sign_in):
        sign_in(make_user(business=make_business(onboarding_complete=False)))
        response = client.patch("/api/business", json={"name": "x"})
        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "ONBOARDING_REQUIRED"


class TestAdmin:
    def test_anonymous(self, client):
        assert client.get("/api/admin/businesses").status_code == 401

    def test_customer_denied(self, client, make_user, sign_in):
        sign_in(make_user())
        response = client.get("/api/admin/businesses")
        assert response.status_code == 403
        assert response.json()["detail"] == {"error": "NOT_ADMIN", "redirectTo": "/dashboard"}

    def test_pending_filter_and_complete(self, client, admin_user, make_business, sign_in):
        make_business(name="Auto", onboarding_complete=True)
        pending = make_business(name="Multi", requires_manual_setup=True)
        sign_in(admin_user)

        assert client.get("/api/admin/businesses").json()["total"] == 2
        listing = client.get("/api/admin/businesses", params={"pending": "true"}).json()
        assert [b["id"] for b in listing["businesses"]] == [pending.id]

        response = client.post(f"/api/admin/businesses/{pending.id}/complete-setup")
        assert response.status_code == 200
        assert response.json()["business"]["onboardingComplete"] is True
        assert response.json()["business"]["requiresManualSetup"] is False
        assert client.get("/api/admin/businesses", params={"pending": "true"}).json()["total"] == 0

    def test_complete_unknown_business(self, client, admin_user, sign_in):
        sign_in(admin_user)
        assert client.post("/api/admin/businesses/999/complete-setup").status_code == 404


class TestSmsOptIn:
    def test_consent_true(self, client):
        response = client.post("/api/sms-opt-in", json={"consent": True})
        assert response.status_code == 200
        assert response.json() == {"ok": True, "message": "Opt-in received."}

    def test_consent_string(self, client):
        response = client.post("/api/sms-opt-in", json={"consent": "yes"})
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Consent is required"}

    def test_empty_body(self, client):
        response = client.post("/api/sms-opt-in", content=b"")
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Invalid request"}

    def test_phone_with_whitespace(self, client):
        response = client.post(
            "/api/sms-opt-in", json={"consent": True, "phoneNumber": " 555-0100 "}
        )
        assert response.status_code == 200
        assert response.json()["ok"] is True

    def test_no_auth_needed_even_when_signed_out(self, client, auth_state):
        assert auth_state["user"] is None
        assert client.post("/api/sms-opt-in", json={"consent": True}).status_code == 200

    @pytest.mark.parametrize("body", [b"[" * 4000, b'{"a":' * 800])
    def test_deeply_nested_body(self, client, body):
        response = client.post("/api/sms-opt-in", content=body)
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Invalid request"}

    def test_huge_nested_body(self, client):
        response = client.post("/api/sms-opt-in", content=b"[" * 200000)
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Invalid request"}

    def test_oversized_body_rejected_before_parsing(self, client):
        body = b'{"consent": true, "phoneNumber": "' + b"5" * 5000 + b'"}'
        response = client.post("/api/sms-opt-in", content=body)
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Invalid request"}

    def test_body_at_limit_still_parsed(self, client):
        padding = b" " * (4096 - len(b'{"consent": true}'))
        response = client.post("/api/sms-opt-in", content=b'{"consent": true}' + padding)
        assert response.status_code == 200
        assert response.json()["ok"] is True


def test_sms_opt_in_rate_limited(client):
    from leadline.main import app
    from leadline.routes.consent import sms_opt_in_rate_limit

    del app.dependency_overrides[sms_opt_in_rate_limit]
    statuses = [
        client.post("/api/sms-opt-in", json={"consent": True}).status_code for _ in range(11)
    ]
    assert statuses[:10] == [200] * 10
    assert statuses[10] == 429
