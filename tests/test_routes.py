"""
API tests for the REST surface.

Uses FastAPI's TestClient against src.main:app without running the
lifespan (no Firebase); services are injected through the route setters.

Run with: python -m pytest tests/test_routes.py -v
"""

import asyncio
import random
import sys
from pathlib import Path
from unittest import mock

import pytest
from fastapi.testclient import TestClient

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.api import routes
from src.main import app
from src.models import EntitySearchResult, VocabularyPool
from src.pipeline.coordinator import StoryCoordinator
from src.services.errors import EntityNotFoundError, UpstreamServiceError

from fakes import FakeGemini, InMemoryStorage, make_profile, make_story


@pytest.fixture
def client(settings):
    storage = InMemoryStorage()
    gemini = FakeGemini()
    coordinator = StoryCoordinator(storage, gemini, settings, rng=random.Random(1))

    qloo = mock.MagicMock()
    qloo.search = mock.AsyncMock(return_value=[
        EntitySearchResult(id="E1", name="Arrival", image_url="https://img.example/e1.jpg", type="movie")
    ])
    taste_builder = mock.MagicMock()

    async def add_entity(entity_id):
        profile = make_profile(entity_id, name="Arrival")
        await storage.insert_profile(profile)
        return profile

    taste_builder.add_entity = mock.AsyncMock(side_effect=add_entity)

    routes.set_coordinator(coordinator)
    routes.set_qloo_client(qloo)
    routes.set_taste_builder(taste_builder)

    test_client = TestClient(app)
    test_client.storage = storage
    test_client.gemini = gemini
    test_client.qloo = qloo
    test_client.taste_builder = taste_builder
    yield test_client

    routes.set_coordinator(None)
    routes.set_qloo_client(None)
    routes.set_taste_builder(None)


def _seed(client, story):
    asyncio.run(client.storage.create_story(story))


class TestEntities:

    def test_search_requires_query(self, client):
        response = client.get("/api/entities")
        assert response.status_code == 400
        assert response.json() == {"error": "Search query is required"}

    def test_search_results(self, client):
        response = client.get("/api/entities", params={"query": "arrival"})
        assert response.status_code == 200
        assert response.json()[0]["id"] == "E1"
        client.qloo.search.assert_awaited_once_with("arrival")

    def test_search_client_error_status_echoed(self, client):
        client.qloo.search.side_effect = UpstreamServiceError("qloo", "Forbidden", upstream_status=403)
        response = client.get("/api/entities", params={"query": "arrival"})
        assert response.status_code == 403
        assert response.json() == {"error": "Qloo API Search Error"}

    def test_search_server_error_is_bad_gateway(self, client):
        client.qloo.search.side_effect = UpstreamServiceError("qloo", "boom", upstream_status=500, transient=True)
        response = client.get("/api/entities", params={"query": "arrival"})
        assert response.status_code == 502
        assert "boom" not in response.text

    def test_add_entity(self, client):
        response = client.post("/api/entity", json={"id": "E1"})
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Entity successfully added to preferences!"
        assert body["data"]["entity"]["entity_id"] == "E1"

    def test_add_entity_twice(self, client):
        client.post("/api/entity", json={"id": "E1"})
        response = client.post("/api/entity", json={"id": "E1"})
        assert response.status_code == 404
        assert response.json() == {"message": "The entity is already added"}

    def test_add_unknown_entity(self, client):
        client.taste_builder.add_entity.side_effect = EntityNotFoundError("E404")
        response = client.post("/api/entity", json={"id": "E404"})
        assert response.status_code == 404
        assert response.json() == {"message": "Entity with ID 'E404' not found."}

    @pytest.mark.parametrize("body", [{}, {"id": ""}, {"id": "   "}])
    def test_add_entity_requires_id(self, client, body):
        response = client.post("/api/entity", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid Qloo Entity ID provided."}

    def test_preferences(self, client):
        client.post("/api/entity", json={"id": "E1"})
        response = client.get("/api/preferences")
        assert response.status_code == 200
        assert response.json()[0]["name"] == "Arrival"


class TestStories:

    def test_start_without_preferences(self, client):
        response = client.post("/api/stories")
        assert response.status_code == 204

    def test_start_and_read_story(self, client):
        client.post("/api/entity", json={"id": "E1"})
        response = client.post("/api/stories")
        assert response.status_code == 200
        story_id = response.json()["storyId"]
        assert response.json()["message"] == "The story segment was generated successfully!"

        status = client.get(f"/api/stories/{story_id}").json()
        assert status == {
            "segments": ["The first segment."],
            "title": "The Glass Orchard",
            "is_generating": False,
            "is_ended": False,
        }

        listing = client.get("/api/stories").json()
        assert listing == [{"title": "The Glass Orchard", "story_id": story_id, "ended": False}]

    def test_malformed_generation(self, client):
        client.post("/api/entity", json={"id": "E1"})
        client.gemini.start_response = {"story": "no title"}
        response = client.post("/api/stories")
        assert response.status_code == 502
        assert response.json() == {"error": "The AI could not generate a valid response for the story."}

    def test_unknown_story(self, client):
        response = client.get("/api/stories/story_missing")
        assert response.status_code == 404
        assert response.json() == {"message": "Story with ID 'story_missing' not found."}

    def test_continue(self, client):
        _seed(client, make_story(3))
        response = client.post("/api/stories/story_test/continue")
        assert response.status_code == 200
        assert response.json() == {"countSegment": 3, "newSegment": "Next segment.", "is_ended": False}

    def test_continue_while_generating(self, client):
        _seed(client, make_story(3, generation_status=True))
        response = client.post("/api/stories/story_test/continue")
        assert response.status_code == 409

    def test_continue_ended_story(self, client):
        _seed(client, make_story(61, ended=True))
        response = client.post("/api/stories/story_test/continue")
        assert response.status_code == 409
        assert response.json() == {"error": "This story has already ended."}

    def test_final_segment(self, client):
        _seed(client, make_story(60))
        response = client.post("/api/stories/story_test/continue")
        assert response.json()["is_ended"] is True
        assert client.get("/api/stories/story_test").json()["is_ended"] is True


class TestTranslations:

    def test_translate(self, client):
        _seed(client, make_story(2))
        response = client.post(
            "/api/translations", json={"segment": "segment 1", "segmentIndex": 0, "storyId": "story_test"}
        )
        assert response.status_code == 200
        assert response.json() == {"translation": "[...] house [...]"}

    def test_missing_fields(self, client):
        response = client.post("/api/translations", json={"segment": "segment 1"})
        assert response.status_code == 400

    def test_negative_index(self, client):
        _seed(client, make_story(2))
        response = client.post("/api/translations", json={"segment": "x", "segmentIndex": -1, "storyId": "story_test"})
        assert response.status_code == 400


class TestWords:

    def test_empty_pool(self, client):
        response = client.get("/api/words")
        assert response.json() == {"base": [], "getting": [], "comfortab": []}

    def test_move_words(self, client):
        client.storage.pool = VocabularyPool(base_words=["casa", "luz"]).model_dump(mode="json")
        response = client.post("/api/words", json={
            "selectedWords": [{"id": "0-base_words", "value": "casa"}],
            "target": "comfortable_words",
        })
        assert response.status_code == 200
        assert response.json() == {"message": "Words successfully updated to Learned."}
        assert client.get("/api/words").json() == {"base": ["luz"], "getting": [], "comfortab": ["casa"]}

    @pytest.mark.parametrize("body", [{}, {"selectedWords": []}, {"target": "base_words"}])
    def test_move_requires_words_and_target(self, client, body):
        response = client.post("/api/words", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Missing selectedWords or target in request body."}

    def test_invalid_target(self, client):
        response = client.post("/api/words", json={
            "selectedWords": [{"id": "0-base_words", "value": "casa"}],
            "target": "mastered",
        })
        assert response.status_code == 400


class TestHealth:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.json()["status"] == "healthy"
        assert response.json()["coordinator_initialized"] is True
