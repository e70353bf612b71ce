import uuid

import pytest
from sqlalchemy import select

from designspace import graph
from designspace.errors import InvalidState, NotFound
from designspace.models import Design, Furniture, Project, Template

from tests.conftest import add, make_furniture, make_project, make_template, square_room


def rect(width, length):
    return [{"x": 0, "y": 0}, {"x": width, "y": 0}, {"x": width, "y": length}, {"x": 0, "y": length}]


class TestMetadata:
    def test_polygon_area(self):
        assert graph.polygon_area(rect(3, 4)) == 12
        assert graph.polygon_area([{"x": 0, "y": 0}, {"x": 5, "y": 0}]) == 0
        assert graph.polygon_area(None) == 0

    def test_compute_metadata(self):
        meta = graph.compute_metadata(
            {"rooms": [{"points": rect(3, 4)}, {"points": rect(2, 2)}]},
            [{"price": 100}, {"price": 49.5}, {}],
        )
        assert meta == {"totalArea": 16, "totalCost": 149.5, "furnitureCount": 3}

    def test_recompute_is_idempotent(self):
        design = Design(elements={"walls": [], "windows": [], "rooms": [{"points": rect(3, 4)}]},
                        furniture=[{"price": 10}])
        first = graph.recompute_metadata(design)
        assert graph.recompute_metadata(design) == first
        assert design.total_area == 12
        assert design.furniture_count == 1

    async def test_template_area_follows_room_walls(self, session_maker):
        template = await make_template(session_maker, walls=[{"id": "room-1", "type": "room", "points": rect(5, 5)}],
                                       furniture=[{"name": "Sofa", "price": 300}, {"name": "Rug"}])
        assert (template.total_area, template.total_cost, template.furniture_count) == (25, 300, 2)

        async with session_maker() as db:
            stored = await db.get(Template, template.id)
            stored.walls = [{"id": "room-1", "type": "room", "points": rect(2, 3)}]
            await db.commit()
            assert stored.total_area == 6
            assert stored.wall_count == 1

    async def test_authored_template_area_kept_without_rooms(self, session_maker):
        template = await make_template(session_maker, total_area=40, walls=[{"id": "wall-1", "type": "wall"}])
        assert template.total_area == 40


class TestCollaborators:
    def setup_method(self):
        self.owner_id = uuid.uuid4()
        self.project = Project(owner_id=self.owner_id, collaborators=[])

    def test_upsert_keeps_single_entry(self):
        user_id = uuid.uuid4()
        graph.add_collaborator(self.project, user_id, "viewer")
        graph.add_collaborator(self.project, user_id, "editor")
        assert len(self.project.collaborators) == 1
        assert self.project.collaborators[0].role == "editor"

    def test_remove_then_add(self):
        user_id = uuid.uuid4()
        graph.add_collaborator(self.project, user_id, "viewer")
        assert graph.remove_collaborator(self.project, user_id) is True
        graph.add_collaborator(self.project, user_id, "admin")
        assert [(c.user_id, c.role) for c in self.project.collaborators] == [(user_id, "admin")]

    def test_remove_missing(self):
        assert graph.remove_collaborator(self.project, uuid.uuid4()) is False

    def test_owner_cannot_collaborate(self):
        with pytest.raises(InvalidState):
            graph.add_collaborator(self.project, self.owner_id, "viewer")

    def test_update_missing_role(self):
        with pytest.raises(NotFound):
            graph.update_collaborator_role(self.project, uuid.uuid4(), "editor")


class TestNestedItems:
    def setup_method(self):
        self.design = Design(elements={"walls": [], "windows": [], "rooms": []}, furniture=[])

    def test_add_furniture_assigns_id_and_defaults(self):
        item = graph.add_furniture(self.design, {"name": "Sofa", "category": "Seating", "price": 300})
        assert item["id"].startswith("furniture-")
        assert item["scale"] == {"x": 1, "y": 1, "z": 1}
        assert self.design.total_cost == 300
        assert self.design.furniture_count == 1

    def test_update_furniture_keeps_id(self):
        item = graph.add_furniture(self.design, {"name": "Sofa", "category": "Seating"})
        updated = graph.update_furniture(self.design, item["id"], {"id": "other", "price": 120})
        assert updated["id"] == item["id"]
        assert self.design.total_cost == 120

    def test_update_unknown_furniture(self):
        with pytest.raises(NotFound):
            graph.update_furniture(self.design, "nope", {"price": 1})

    def test_remove_furniture(self):
        item = graph.add_furniture(self.design, {"name": "Sofa", "category": "Seating", "price": 5})
        assert graph.remove_furniture(self.design, item["id"]) is True
        assert graph.remove_furniture(self.design, item["id"]) is False
        assert self.design.total_cost == 0

    def test_room_wall_counts_towards_area(self):
        graph.add_wall(self.design, square_room(4))
        assert len(self.design.elements["rooms"]) == 1
        assert self.design.total_area == 16

    def test_remove_wall_drops_its_windows(self):
        wall = graph.add_wall(self.design, {"points": rect(5, 0)[:2]})
        elements = dict(self.design.elements)
        elements["windows"] = [
            {"id": "w1", "wallId": wall["id"], "segmentIndex": 0, "t": 0.5},
            {"id": "w2", "wallId": "elsewhere", "segmentIndex": 0, "t": 0.5},
        ]
        self.design.elements = elements

        assert graph.remove_wall(self.design, wall["id"]) is True
        assert self.design.elements["walls"] == []
        assert [w["id"] for w in self.design.elements["windows"]] == ["w2"]

    def test_update_unknown_wall(self):
        with pytest.raises(NotFound):
            graph.update_wall(self.design, "nope", {"height": 2})


class TestCopies:
    def test_duplicate_design(self):
        source = Design(project_id=uuid.uuid4(), name="Kitchen", version=7, status="completed",
                        elements={"walls": [], "windows": [], "rooms": [square_room(3)]},
                        furniture=[{"id": "f1", "price": 20}], settings={"gridVisible": False},
                        layers=[], camera=None, environment={}, tags=["a"])
        clone = graph.duplicate_design(source)
        assert clone.name == "Kitchen (Copy)"
        assert clone.version == 1
        assert clone.status == "draft"
        assert clone.project_id == source.project_id
        assert clone.elements == source.elements
        assert clone.elements is not source.elements
        assert clone.total_area == 9

    def test_instantiate_from_template(self):
        template = Template(name="Studio", walls=[square_room(5)], windows=[], furniture=[{"name": "Bed", "price": 400}])
        design = graph.instantiate_from_template(template, uuid.uuid4())
        assert design.name == "Studio"
        assert design.total_area == 25
        assert design.total_cost == 400
        assert design.furniture[0]["id"].startswith("furniture-")
        design.elements["walls"][0]["height"] = 9
        assert template.walls[0].get("height") != 9

    async def test_duplicate_project(self, session_maker, owner, other):
        project = await make_project(session_maker, owner, name="Home", settings={"units": "imperial"})
        await add(session_maker,
                  Design(project_id=project.id, name="Living", description="South facing", tags=["cosy"],
                         elements={"walls": [], "windows": [], "rooms": [square_room()]},
                         furniture=[{"id": "furniture-1", "name": "Sofa", "price": 900,
                                     "position": {"x": 1, "y": 0, "z": 2}}],
                         layers=[{"id": "layer-1", "name": "Base", "visible": True}],
                         camera={"position": {"x": 5, "y": 5, "z": 5}, "target": {"x": 0, "y": 0, "z": 0}},
                         environment={"lighting": "evening"},
                         settings={"gridSize": 0.25}),
                  Design(project_id=project.id, name="Bath"))

        async with session_maker() as db:
            source = await db.get(Project, project.id)
            graph.add_collaborator(source, other.id, "editor")
            await db.commit()
            clone, copies = await graph.duplicate_project(db, source, other)
            await db.commit()

        async with session_maker() as db:
            stored = await db.get(Project, clone.id)
            designs = (await db.execute(select(Design).where(Design.project_id == clone.id))).scalars().all()
        assert stored.owner_id == other.id
        assert stored.name == "Home (Copy)"
        assert stored.collaborators == []
        assert stored.settings == {"units": "imperial"}
        assert sorted(d.name for d in designs) == ["Bath", "Living"]
        assert all(d.version == 1 and d.status == "draft" for d in designs)
        assert len(copies) == 2

        async with session_maker() as db:
            originals = {d.name: d for d in await graph.designs_of(db, project.id)}
        structure = ("description", "tags", "elements", "furniture", "layers", "camera", "environment", "settings",
                     "total_area", "total_cost", "furniture_count")
        for duplicate in designs:
            original = originals[duplicate.name]
            assert duplicate.id != original.id
            assert {f: getattr(duplicate, f) for f in structure} == {f: getattr(original, f) for f in structure}
        assert originals["Living"].total_area == 16

    async def test_delete_project_cascade(self, session_maker, owner):
        project = await make_project(session_maker, owner)
        await add(session_maker, Design(project_id=project.id, name="A"), Design(project_id=project.id, name="B"))
        async with session_maker() as db:
            removed = await graph.delete_project_cascade(db, await db.get(Project, project.id))
            await db.commit()
            remaining = (await db.execute(select(Design))).scalars().all()
        assert removed == 2
        assert remaining == []


class TestCounters:
    def test_running_mean(self):
        assert graph.running_mean(0, 0, 4) == 4
        assert graph.running_mean(4, 1, 2) == 3

    async def test_record_rating(self, session_maker):
        item = await make_furniture(session_maker)
        async with session_maker() as db:
            await graph.record_rating(db, Furniture, item.id, 4.0)
            average, count = await graph.record_rating(db, Furniture, item.id, 2.0)
            await db.commit()
        assert (average, count) == (3.0, 2)

    async def test_version_bumps_on_save(self, session_maker, owner):
        project = await make_project(session_maker, owner)
        assert project.version == 1
        async with session_maker() as db:
            stored = await db.get(Project, project.id)
            stored.name = "Renamed"
            await db.commit()
            assert stored.version == 2
            await db.commit()
            assert stored.version == 2
