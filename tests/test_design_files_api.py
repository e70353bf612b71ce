from designspace.models import DesignFile

from tests.conftest import add, auth_headers

SCENE = {"objects": [{"type": "box", "position": [0, 0, 0]}], "camera": {"fov": 50}}


class TestSaveFile:
    """POST /api/design-files/"""

    async def test_save_and_read_back(self, client, owner):
        response = await client.post(
            "/api/design-files/",
            json={"name": "  Sketch  ", "description": "First pass", "sceneData": SCENE},
            headers=auth_headers(owner),
        )
        assert response.status_code == 201
        saved = response.json()["data"]["file"]
        assert saved["name"] == "Sketch"
        assert saved["user"] == str(owner.id)

        fetched = await client.get(f"/api/design-files/{saved['id']}", headers=auth_headers(owner))
        assert fetched.json()["data"]["file"]["sceneData"] == SCENE

    async def test_scene_is_required(self, client, owner):
        response = await client.post(
            "/api/design-files/", json={"name": "Empty", "sceneData": {}}, headers=auth_headers(owner)
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "sceneData"

    async def test_requires_identity(self, client):
        response = await client.post("/api/design-files/", json={"name": "Anon", "sceneData": SCENE})
        assert response.status_code == 401


class TestOwnFilesOnly:
    async def test_list_is_per_user(self, client, session_maker, owner, other):
        await add(session_maker,
                  DesignFile(user_id=owner.id, name="Mine", scene_data=SCENE),
                  DesignFile(user_id=other.id, name="Theirs", scene_data=SCENE))
        response = await client.get("/api/design-files/", headers=auth_headers(owner))
        assert [f["name"] for f in response.json()["data"]["files"]] == ["Mine"]

    async def test_foreign_file_is_not_found(self, client, session_maker, owner, other):
        design_file = await add(session_maker, DesignFile(user_id=owner.id, name="Mine", scene_data=SCENE))
        url = f"/api/design-files/{design_file.id}"
        assert (await client.get(url, headers=auth_headers(other))).status_code == 404
        assert (await client.put(url, json={"name": "Taken"}, headers=auth_headers(other))).status_code == 404
        assert (await client.delete(url, headers=auth_headers(other))).status_code == 404


class TestUpdateAndDelete:
    async def test_partial_update(self, client, session_maker, owner):
        design_file = await add(session_maker, DesignFile(user_id=owner.id, name="Mine", scene_data=SCENE))
        response = await client.put(
            f"/api/design-files/{design_file.id}", json={"description": "Revised"}, headers=auth_headers(owner)
        )
        updated = response.json()["data"]["file"]
        assert updated["name"] == "Mine"
        assert updated["description"] == "Revised"
        assert updated["sceneData"] == SCENE

    async def test_delete(self, client, session_maker, owner):
        design_file = await add(session_maker, DesignFile(user_id=owner.id, name="Mine", scene_data=SCENE))
        url = f"/api/design-files/{design_file.id}"
        assert (await client.delete(url, headers=auth_headers(owner))).status_code == 200
        assert (await client.get(url, headers=auth_headers(owner))).status_code == 404
