"""
API routes for Storystone

REST endpoints for preferences, stories, translations and the word pool.
Pipeline errors (StorystoneError) are turned into JSON responses by the
exception handler in src/main.py.
"""

from fastapi import APIRouter, Query, Response
from fastapi.responses import JSONResponse
from typing import List, Optional
import logging

from src.models import (
    AddEntityRequest,
    EntitySearchResult,
    MoveWordsRequest,
    PreferenceItem,
    StoryStatusResponse,
    StorySummary,
    TranslationRequest,
    WordsResponse,
)
from src.config.limits import SEARCH_QUERY_MAX_LENGTH
from src.pipeline import StoryCoordinator, TasteProfileBuilder
from src.services.errors import InputValidationError, StorystoneError, UpstreamServiceError
from src.services.qloo import QlooClient
from src.services.vocabulary import parse_tier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["stories"])

# Global services (will be set by main app)
_coordinator: Optional[StoryCoordinator] = None
_taste_builder: Optional[TasteProfileBuilder] = None
_qloo: Optional[QlooClient] = None


def set_coordinator(coordinator: StoryCoordinator):
    """Set the global coordinator instance"""
    global _coordinator
    _coordinator = coordinator


def set_taste_builder(builder: TasteProfileBuilder):
    global _taste_builder
    _taste_builder = builder


def set_qloo_client(client: QlooClient):
    global _qloo
    _qloo = client


def get_coordinator() -> StoryCoordinator:
    """Get the global coordinator instance"""
    if _coordinator is None:
        raise StorystoneError("Coordinator not initialized")
    return _coordinator


# =========================================================================
# Preferences
# =========================================================================

@router.get("/entities", response_model=List[EntitySearchResult])
async def search_entities(query: Optional[str] = Query(default=None, max_length=SEARCH_QUERY_MAX_LENGTH)):
    """Search movies, TV shows and books to add as preferences"""
    if not query:
        return JSONResponse(status_code=400, content={"error": "Search query is required"})
    if _qloo is None:
        raise StorystoneError("Qloo client not initialized")

    try:
        return await _qloo.search(query)
    except UpstreamServiceError as e:
        # Client errors from the search API keep their status
        if e.upstream_status and 400 <= e.upstream_status < 500:
            return JSONResponse(
                status_code=e.upstream_status,
                content={"error": "Qloo API Search Error"}
            )
        raise


@router.post("/entity", status_code=201)
async def add_entity(request: AddEntityRequest):
    """
    Add a liked entity: builds its narrative profile and stores it.

    Returns 404 with a message when the entity is unknown or was already added.
    """
    if not request.id or not request.id.strip():
        raise InputValidationError("Invalid Qloo Entity ID provided.")
    if _taste_builder is None:
        raise StorystoneError("Taste profile builder not initialized")

    profile = await _taste_builder.add_entity(request.id)
    return {
        "message": "Entity successfully added to preferences!",
        "data": profile.model_dump(mode="json")
    }


@router.get("/preferences", response_model=List[PreferenceItem])
async def get_preferences():
    return await get_coordinator().list_preferences()


# =========================================================================
# Stories
# =========================================================================

@router.post("/stories")
async def start_story():
    """
    Start a new story from the stored preferences.

    204 when there are no preferences yet.
    """
    result = await get_coordinator().start_story()
    if result is None:
        return Response(status_code=204)
    return {
        "message": "The story segment was generated successfully!",
        "storyId": result.story_id
    }


@router.get("/stories", response_model=List[StorySummary])
async def list_stories():
    return await get_coordinator().list_stories()


@router.get("/stories/{story_id}", response_model=StoryStatusResponse)
async def get_story(story_id: str):
    """Segments and generation state of one story"""
    story = await get_coordinator().get_story(story_id)
    return StoryStatusResponse(
        segments=story.segments,
        title=story.title,
        is_generating=story.generation_status,
        is_ended=story.ended,
    )


@router.post("/stories/{story_id}/continue")
async def continue_story(story_id: str):
    """
    Generate the next segment.

    409 when a segment is already being generated or the story has ended.
    """
    result = await get_coordinator().continue_story(story_id)
    return {
        "countSegment": result.count_segment,
        "newSegment": result.new_segment,
        "is_ended": result.is_ended
    }


# =========================================================================
# Translations
# =========================================================================

@router.post("/translations")
async def translate_segment(request: TranslationRequest):
    translation = await get_coordinator().translate_segment(
        request.storyId, request.segmentIndex, request.segment
    )
    return {"translation": translation}


# =========================================================================
# Words
# =========================================================================

@router.get("/words", response_model=WordsResponse)
async def get_words():
    pool = await get_coordinator().get_pool()
    return WordsResponse.from_pool(pool)


@router.post("/words")
async def move_words(request: MoveWordsRequest):
    """Move the selected words to the target tier"""
    if not request.selectedWords or not request.target:
        raise InputValidationError("Missing selectedWords or target in request body.")

    target = parse_tier(request.target)
    await get_coordinator().move_words([word.value for word in request.selectedWords], target)
    return {"message": f"Words successfully updated to {target.display_name}."}


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "Storystone",
        "coordinator_initialized": _coordinator is not None
    }
