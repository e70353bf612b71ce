from designspace.models import Design, User

from tests.conftest import add, auth_headers, make_project


class TestPlans:
    async def test_plans_are_public(self, client):
        response = await client.get("/api/subscriptions/plans")
        assert [p["id"] for p in response.json()["data"]["plans"]] == ["free", "pro", "enterprise"]

    async def test_current_with_usage(self, client, session_maker, owner):
        project = await make_project(session_maker, owner)
        await add(session_maker, Design(project_id=project.id, name="A"), Design(project_id=project.id, name="B"))
        response = await client.get("/api/subscriptions/current", headers=auth_headers(owner))
        data = response.json()["data"]
        assert data["subscription"]["plan"] == "free"
        assert data["usage"]["projects"] == {"used": 1, "limit": 5}
        assert data["usage"]["designs"] == {"used": 2, "limit": 10}


class TestUpgrade:
    """POST /api/subscriptions/upgrade"""

    async def test_upgrade_with_mock_billing(self, client, session_maker, owner):
        response = await client.post(
            "/api/subscriptions/upgrade",
            json={"planId": "pro", "paymentMethodId": "pm_card_visa"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 200
        subscription = response.json()["data"]["subscription"]
        assert subscription["plan"] == "pro"
        assert subscription["stripeCustomerId"].startswith("cus_")
        assert subscription["currentPeriodEnd"]

        async with session_maker() as db:
            assert (await db.get(User, owner.id)).subscription_plan == "pro"

    async def test_same_or_lower_plan(self, client, pro_user):
        response = await client.post(
            "/api/subscriptions/upgrade",
            json={"planId": "pro", "paymentMethodId": "pm_card_visa"},
            headers=auth_headers(pro_user),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "You are already on this plan or higher"

    async def test_free_is_not_a_target(self, client, owner):
        response = await client.post(
            "/api/subscriptions/upgrade", json={"planId": "free", "paymentMethodId": "pm"}, headers=auth_headers(owner)
        )
        assert response.status_code == 400


class TestCancel:
    async def test_cancel_drops_to_free(self, client, pro_user):
        response = await client.post("/api/subscriptions/cancel", headers=auth_headers(pro_user))
        subscription = response.json()["data"]["subscription"]
        assert subscription["plan"] == "free"
        assert subscription["status"] == "cancelled"

    async def test_nothing_to_cancel(self, client, owner):
        response = await client.post("/api/subscriptions/cancel", headers=auth_headers(owner))
        assert response.status_code == 400


class TestWebhook:
    async def test_acknowledged_without_secret(self, client):
        response = await client.post("/api/subscriptions/webhook", content=b"{}")
        assert response.json() == {"received": True}
