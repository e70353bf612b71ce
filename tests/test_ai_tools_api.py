import httpx
import pytest

from designspace import ai_tools
from designspace.errors import ServiceUnavailable
from designspace.settings import settings

from tests.conftest import auth_headers, make_furniture


class TestGate:
    async def test_free_plan_is_refused(self, client, owner):
        response = await client.post(
            "/api/ai-tools/color-palette", json={"baseColor": "#336699"}, headers=auth_headers(owner)
        )
        assert response.status_code == 403
        assert response.json()["requiredPlan"] == "pro"
        assert response.json()["currentPlan"] == "free"

    async def test_anonymous_is_refused(self, client):
        response = await client.post("/api/ai-tools/color-palette", json={})
        assert response.status_code == 401


class TestLocalStandins:
    async def test_color_palette(self, client, pro_user):
        response = await client.post(
            "/api/ai-tools/color-palette",
            json={"baseColor": "#336699", "style": "complementary"},
            headers=auth_headers(pro_user),
        )
        data = response.json()["data"]
        assert data["primary"] == "#336699"
        assert len(data["palette"]) == 4
        assert all(c.startswith("#") and len(c) == 7 for c in data["palette"])

    async def test_bad_color(self, client, pro_user):
        response = await client.post(
            "/api/ai-tools/color-palette", json={"baseColor": "blue"}, headers=auth_headers(pro_user)
        )
        assert response.status_code == 400

    async def test_suggestions_stay_in_budget(self, client, session_maker, pro_user):
        await make_furniture(session_maker, name="Sofa", retail_price=700)
        await make_furniture(session_maker, name="Stool", retail_price=60)
        await make_furniture(session_maker, name="Lamp", category="Lighting", type="lamp", retail_price=90)
        await make_furniture(session_maker, name="Bed", category="Bedroom", type="bed", retail_price=50)

        response = await client.post(
            "/api/ai-tools/furniture-suggestions",
            json={"roomType": "living", "budget": 200},
            headers=auth_headers(pro_user),
        )
        data = response.json()["data"]
        assert {f["name"] for f in data["suggestions"]} == {"Stool", "Lamp"}
        assert data["totalCost"] == 150

    async def test_design_generator(self, client, session_maker, pro_user):
        await make_furniture(session_maker, name="Desk", category="Tables", type="desk", retail_price=300)
        response = await client.post(
            "/api/ai-tools/design-generator",
            json={"roomType": "office", "roomSize": {"width": 4, "length": 3}},
            headers=auth_headers(pro_user),
        )
        data = response.json()["data"]
        assert data["layout"]["rooms"][0]["points"][2] == {"x": 4, "y": 3}
        assert [p["name"] for p in data["furniture"]] == ["Desk"]
        assert data["estimatedCost"] == 300

    async def test_smart_wizard(self, client, session_maker, pro_user):
        await make_furniture(session_maker, name="Sofa", retail_price=400)
        await make_furniture(session_maker, name="Bed", category="Bedroom", type="bed", retail_price=50)
        response = await client.post(
            "/api/ai-tools/smart-wizard",
            json={"roomType": "living", "dimensions": {"width": 5, "height": 2.6, "depth": 4},
                  "preferences": {"mood": "calm", "style": "not-a-style"}},
            headers=auth_headers(pro_user),
        )
        assert response.status_code == 200
        data = response.json()["data"]
        room = data["layout"]["walls"][0]
        assert room["points"][2] == {"x": 5, "y": 4}
        assert room["height"] == 2.6
        assert data["layout"]["windows"][0]["wallId"] == room["id"]
        assert len(data["layout"]["doors"]) == 1
        assert [p["name"] for p in data["furniture"]] == ["Sofa"]
        assert data["estimatedCost"] == 400

    async def test_smart_wizard_validates_dimensions(self, client, pro_user):
        response = await client.post(
            "/api/ai-tools/smart-wizard",
            json={"roomType": "living", "dimensions": {"width": 0.5, "height": 3, "depth": 4}},
            headers=auth_headers(pro_user),
        )
        assert response.status_code == 400

    async def test_room_scan(self, client, pro_user):
        response = await client.post(
            "/api/ai-tools/room-scan",
            json={"image": "data:image/png;base64,AAAA", "expectedDimensions": {"width": 6}},
            headers=auth_headers(pro_user),
        )
        data = response.json()["data"]
        assert data["dimensions"] == {"width": 6, "height": 3, "depth": 5}
        assert data["detectedFurniture"] == []
        assert data["layout"]["rooms"][0]["points"][2] == {"x": 6, "y": 5}

    async def test_room_scan_needs_image(self, client, pro_user):
        response = await client.post("/api/ai-tools/room-scan", json={}, headers=auth_headers(pro_user))
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "image"

    async def test_usage_stats(self, client, pro_user):
        response = await client.get("/api/ai-tools/usage-stats", headers=auth_headers(pro_user))
        assert response.json()["data"]["usageStats"]["colorPalette"] == {"limit": 100, "remaining": 100}


class TestRemoteGenerator:
    async def test_retries_then_unavailable(self, monkeypatch):
        calls = []

        async def failing_request(self, method, url, **kwargs):
            calls.append(url)
            raise httpx.ConnectError("refused")

        async def no_sleep(_):
            return None

        monkeypatch.setattr(settings, "AI_API_URL", "http://generator.invalid")
        monkeypatch.setattr(httpx.AsyncClient, "request", failing_request)
        monkeypatch.setattr(ai_tools.asyncio, "sleep", no_sleep)

        with pytest.raises(ServiceUnavailable):
            await ai_tools.ask_generator("color-palette", {})
        assert len(calls) == settings.AI_MAX_RETRIES + 1
        assert calls[0] == "http://generator.invalid/color-palette"

    async def test_forwards_answer(self, monkeypatch):
        async def answering_request(self, method, url, **kwargs):
            return httpx.Response(200, json={"palette": ["#000000"]}, request=httpx.Request(method, url))

        monkeypatch.setattr(settings, "AI_API_URL", "http://generator.invalid/")
        monkeypatch.setattr(httpx.AsyncClient, "request", answering_request)

        assert await ai_tools.ask_generator("color-palette", {}) == {"palette": ["#000000"]}
