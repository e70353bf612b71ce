from designspace.models import Design

from tests.conftest import add, add_role, auth_headers, make_project, square_room


async def make_design(session_maker, project, **fields):
    fields.setdefault("name", "Living Room")
    return await add(session_maker, Design(project_id=project.id, **fields))


class TestCreateDesign:
    """POST /api/designs/"""

    async def test_metadata_from_design_data(self, client, session_maker, owner):
        project = await make_project(session_maker, owner)
        payload = {
            "projectId": str(project.id),
            "name": "Studio",
            "designData": {
                "elements": {"walls": [], "windows": [], "rooms": [square_room(4)]},
                "furniture": [
                    {"name": "Sofa", "category": "Seating", "price": 500, "position": {"x": 1, "y": 0, "z": 1}},
                ],
            },
        }
        response = await client.post("/api/designs/", json=payload, headers=auth_headers(owner))
        assert response.status_code == 201
        design = response.json()["data"]["design"]
        assert design["metadata"]["totalArea"] == 16
        assert design["metadata"]["totalCost"] == 500
        assert design["metadata"]["furnitureCount"] == 1
        assert design["furniture"][0]["id"].startswith("furniture-")
        assert design["version"] == 1

    async def test_viewer_may_add_designs(self, client, session_maker, owner, other):
        project = await make_project(session_maker, owner)
        await add_role(session_maker, project, other, "viewer")
        response = await client.post(
            "/api/designs/", json={"projectId": str(project.id), "name": "Mine"}, headers=auth_headers(other)
        )
        assert response.status_code == 201

    async def test_outsider_gets_not_found(self, client, session_maker, owner, other):
        project = await make_project(session_maker, owner)
        response = await client.post(
            "/api/designs/", json={"projectId": str(project.id), "name": "Mine"}, headers=auth_headers(other)
        )
        assert response.status_code == 404

    async def test_window_must_sit_on_segment(self, client, session_maker, owner):
        project = await make_project(session_maker, owner)
        window = {"id": "w1", "wallId": "room-1", "segmentIndex": 0, "t": 1.5}
        payload = {
            "projectId": str(project.id),
            "name": "Bad",
            "designData": {"elements": {"walls": [], "windows": [window], "rooms": []}},
        }
        response = await client.post("/api/designs/", json=payload, headers=auth_headers(owner))
        assert response.status_code == 400

    async def test_custom_properties_reject_lists(self, client, session_maker, owner):
        project = await make_project(session_maker, owner)
        item = {"name": "Sofa", "category": "Seating", "position": {"x": 0, "y": 0, "z": 0},
                "customProperties": {"fabric": ["linen"]}}
        payload = {"projectId": str(project.id), "name": "Bad", "designData": {"furniture": [item]}}
        response = await client.post("/api/designs/", json=payload, headers=auth_headers(owner))
        assert response.status_code == 400


class TestReadDesigns:
    async def test_list_by_project(self, client, session_maker, owner):
        project = await make_project(session_maker, owner)
        elsewhere = await make_project(session_maker, owner)
        await make_design(session_maker, project, name="Here")
        await make_design(session_maker, elsewhere, name="There")

        response = await client.get(f"/api/designs/?projectId={project.id}", headers=auth_headers(owner))
        assert [d["name"] for d in response.json()["data"]["designs"]] == ["Here"]

        everything = await client.get("/api/designs/", headers=auth_headers(owner))
        assert everything.json()["data"]["pagination"]["totalItems"] == 2

    async def test_public_design_in_private_project(self, client, session_maker, owner):
        project = await make_project(session_maker, owner)
        design = await make_design(session_maker, project, is_public=True)
        assert (await client.get(f"/api/designs/{design.id}")).status_code == 200
        listed = await client.get("/api/designs/public")
        assert [d["id"] for d in listed.json()["data"]["designs"]] == [str(design.id)]

    async def test_private_design_hidden(self, client, session_maker, owner, other):
        project = await make_project(session_maker, owner)
        design = await make_design(session_maker, project)
        assert (await client.get(f"/api/designs/{design.id}", headers=auth_headers(other))).status_code == 404

    async def test_private_design_in_public_project_hidden(self, client, session_maker, owner, other):
        project = await make_project(session_maker, owner, is_public=True)
        design = await make_design(session_maker, project, name="Secret")
        assert (await client.get(f"/api/designs/{design.id}", headers=auth_headers(other))).status_code == 404
        assert (await client.get(f"/api/designs/{design.id}")).status_code == 404
        assert (await client.get(f"/api/designs/{design.id}", headers=auth_headers(owner))).status_code == 200


class TestUpdateDesign:
    """PUT /api/designs/{id}"""

    async def test_save_bumps_version(self, client, session_maker, owner):
        project = await make_project(session_maker, owner)
        design = await make_design(session_maker, project)
        response = await client.put(
            f"/api/designs/{design.id}",
            json={"name": "Renamed", "elements": {"walls": [], "windows": [], "rooms": [square_room(2)]}},
            headers=auth_headers(owner),
        )
        saved = response.json()["data"]["design"]
        assert saved["version"] == 2
        assert saved["metadata"]["totalArea"] == 4

    async def test_cannot_move_project(self, client, session_maker, owner):
        project = await make_project(session_maker, owner)
        other_project = await make_project(session_maker, owner)
        design = await make_design(session_maker, project)
        response = await client.put(
            f"/api/designs/{design.id}", json={"projectId": str(other_project.id)}, headers=auth_headers(owner)
        )
        assert response.status_code == 400

    async def test_viewer_cannot_save(self, client, session_maker, owner, other):
        project = await make_project(session_maker, owner)
        design = await make_design(session_maker, project)
        await add_role(session_maker, project, other, "viewer")
        response = await client.put(f"/api/designs/{design.id}", json={"name": "x"}, headers=auth_headers(other))
        assert response.status_code == 403

    async def test_editor_deletes(self, client, session_maker, owner, other):
        project = await make_project(session_maker, owner)
        design = await make_design(session_maker, project)
        await add_role(session_maker, project, other, "editor")
        response = await client.delete(f"/api/designs/{design.id}", headers=auth_headers(other))
        assert response.status_code == 200
        assert (await client.get(f"/api/designs/{design.id}", headers=auth_headers(owner))).status_code == 404


class TestNestedItems:
    async def test_furniture_lifecycle(self, client, session_maker, owner):
        project = await make_project(session_maker, owner)
        design = await make_design(session_maker, project)
        base = f"/api/designs/{design.id}/furniture"
        headers = auth_headers(owner)

        added = await client.post(
            base,
            json={"name": "Chair", "category": "Seating", "price": 80, "position": {"x": 1, "y": 0, "z": 2}},
            headers=headers,
        )
        item_id = added.json()["data"]["item"]["id"]
        assert added.json()["data"]["design"]["metadata"]["totalCost"] == 80

        updated = await client.put(f"{base}/{item_id}", json={"price": 120}, headers=headers)
        assert updated.json()["data"]["design"]["metadata"]["totalCost"] == 120

        missing = await client.put(f"{base}/nope", json={"price": 1}, headers=headers)
        assert missing.status_code == 404

        removed = await client.delete(f"{base}/{item_id}", headers=headers)
        assert removed.json()["data"]["design"]["metadata"]["furnitureCount"] == 0

    async def test_wall_removal_drops_windows(self, client, session_maker, owner):
        project = await make_project(session_maker, owner)
        design = await make_design(
            session_maker,
            project,
            elements={
                "walls": [square_room(3)],
                "rooms": [square_room(3)],
                "windows": [{"id": "w1", "wallId": "room-1", "segmentIndex": 0, "t": 0.5}],
            },
        )
        response = await client.delete(f"/api/designs/{design.id}/walls/room-1", headers=auth_headers(owner))
        elements = response.json()["data"]["design"]["elements"]
        assert elements == {"walls": [], "rooms": [], "windows": []}
        assert response.json()["data"]["design"]["metadata"]["totalArea"] == 0

    async def test_add_room_wall(self, client, session_maker, owner):
        project = await make_project(session_maker, owner)
        design = await make_design(session_maker, project)
        response = await client.post(
            f"/api/designs/{design.id}/walls", json=square_room(5, wall_id="r"), headers=auth_headers(owner)
        )
        assert response.json()["data"]["design"]["metadata"]["totalArea"] == 25


class TestDuplicateDesign:
    """POST /api/designs/{id}/duplicate"""

    async def test_copy_into_own_project(self, client, session_maker, owner, other):
        source_project = await make_project(session_maker, owner)
        design = await make_design(session_maker, source_project, is_public=True, name="Loft")
        target = await make_project(session_maker, other)

        response = await client.post(
            f"/api/designs/{design.id}/duplicate", json={"projectId": str(target.id)}, headers=auth_headers(other)
        )
        assert response.status_code == 201
        clone = response.json()["data"]["design"]
        assert clone["name"] == "Loft (Copy)"
        assert clone["project"] == str(target.id)
        assert clone["version"] == 1

    async def test_cannot_copy_into_foreign_project(self, client, session_maker, owner, other):
        project = await make_project(session_maker, owner, is_public=True)
        design = await make_design(session_maker, project, is_public=True)
        response = await client.post(f"/api/designs/{design.id}/duplicate", headers=auth_headers(other))
        assert response.status_code == 403
