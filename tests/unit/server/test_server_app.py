"""Tests for the HTTP API over an explorer session."""

import pytest
from fastapi.testclient import TestClient

from wiki_explorer.core.session import ExplorerSession
from wiki_explorer.server.app import create_app, find_free_port


@pytest.fixture
def api(session: ExplorerSession):
    with TestClient(create_app(session, fps=0)) as client:
        yield client


def node_ids(frame: dict) -> set[str]:
    return {n["id"] for n in frame["nodes"]}


class TestGraphEndpoints:
    """Search, click, delete and clear."""

    def test_health(self, api):
        response = api.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["nodes"] == 0

    def test_search_returns_frame(self, api):
        response = api.post("/api/search", json={"query": "Cat"})

        frame = response.json()
        assert response.status_code == 200
        assert node_ids(frame) == {"Cat", "Felidae", "Mammal", "Dog", "Whiskers"}
        assert frame["focused_id"] == "Cat"
        assert frame["status"]["error"] is None
        assert frame["status"]["link_limit"] == 150
        assert frame["status"]["main_nodes"] == [
            {
                "id": "Cat",
                "description": "Small domesticated carnivore",
                "sub_links": 4,
                "main_links": 0,
            }
        ]

    def test_search_not_found_sets_error(self, api):
        frame = api.post("/api/search", json={"query": "Nope"}).json()

        assert frame["status"]["error"] == "WIKI PAGE NOT FOUND"
        assert frame["nodes"] == []

    def test_click_expands(self, api):
        api.post("/api/search", json={"query": "Cat"})

        frame = api.post("/api/nodes/Felidae/click").json()

        groups = {n["id"]: n["group"] for n in frame["nodes"]}
        assert groups["Felidae"] == "main"
        assert {"Lion", "Tiger"} <= set(groups)

    def test_click_unknown_node_is_404(self, api):
        response = api.post("/api/nodes/Ghost/click")

        assert response.status_code == 404

    def test_delete_reports_removed(self, api):
        api.post("/api/search", json={"query": "Cat"})

        body = api.delete("/api/nodes/Cat").json()

        assert body["removed"] == ["Cat", "Dog", "Felidae", "Mammal", "Whiskers"]
        assert body["nodes"] == []

    def test_clear(self, api):
        api.post("/api/search", json={"query": "Cat"})

        frame = api.post("/api/clear").json()

        assert frame["nodes"] == []
        assert frame["status"]["stats"]["nodes"] == 0


class TestSettingsAndHighlight:
    """Settings, hover and focus."""

    def test_update_settings(self, api):
        api.post("/api/search", json={"query": "Cat"})

        frame = api.put(
            "/api/settings",
            json={"link_limit": 2000, "search_term": "fel", "show_sub_nodes": False},
        ).json()

        assert frame["status"]["link_limit"] == "unlimited"
        assert frame["status"]["search_term"] == "fel"
        assert node_ids(frame) == {"Cat"}

    def test_invalid_link_limit(self, api):
        response = api.put("/api/settings", json={"link_limit": 0})

        assert response.status_code == 422

    def test_hover(self, api):
        api.post("/api/search", json={"query": "Cat"})

        frame = api.post("/api/hover", json={"node_id": "Dog"}).json()

        highlighted = {n["id"] for n in frame["nodes"] if n["highlighted"]}
        assert highlighted == {"Dog"}

    def test_focus_and_background_click(self, api):
        api.post("/api/search", json={"query": "Cat"})

        assert api.post("/api/focus", json={"node_id": "Dog"}).json()["focused_id"] == "Dog"
        assert api.post("/api/background-click").json()["focused_id"] is None

    def test_focus_unknown_node_is_404(self, api):
        assert api.post("/api/focus", json={"node_id": "Ghost"}).status_code == 404


class TestViewEndpoints:
    """Camera and pointer input."""

    def test_zoom_and_pan(self, api):
        frame = api.post("/api/view/zoom", json={"factor": 2.0}).json()
        assert frame["transform"]["k"] == 1.0

        frame = api.post("/api/view/pan", json={"dx": 5, "dy": -5}).json()
        assert frame["transform"]["x"] == 605.0
        assert frame["transform"]["y"] == 395.0

    def test_zoom_factor_must_be_positive(self, api):
        assert api.post("/api/view/zoom", json={"factor": 0}).status_code == 422

    def test_set_transform_clamps(self, api):
        frame = api.put("/api/view/transform", json={"x": 0, "y": 0, "k": 10}).json()

        assert frame["transform"]["k"] == 4.0

    def test_viewport(self, api):
        frame = api.post("/api/viewport", json={"width": 640, "height": 480}).json()

        assert frame["viewport"] == {"width": 640.0, "height": 480.0}

    def test_reset_view(self, api):
        api.post("/api/search", json={"query": "Cat"})

        frame = api.post("/api/view/reset").json()

        assert frame["focused_id"] is None

    def test_drag_protocol(self, api):
        api.post("/api/search", json={"query": "Cat"})

        assert api.post("/api/drag/start", json={"node_id": "Dog"}).json() == {"ok": True}
        moved = api.post("/api/drag/move", json={"node_id": "Dog", "x": 10, "y": 20})
        assert moved.json() == {"ok": True}
        frame = api.get("/api/graph").json()
        dog = next(n for n in frame["nodes"] if n["id"] == "Dog")
        assert dog["pinned"] is True
        assert api.post("/api/drag/end", json={"node_id": "Dog"}).json() == {"ok": True}

    def test_drag_move_needs_coordinates(self, api):
        api.post("/api/search", json={"query": "Cat"})
        api.post("/api/drag/start", json={"node_id": "Dog"})

        response = api.post("/api/drag/move", json={"node_id": "Dog"})

        assert response.status_code == 422


def test_find_free_port():
    port = find_free_port(8080, 8199)

    assert 8080 <= port <= 8199
