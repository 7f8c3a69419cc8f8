"""Services package for Storystone"""

from .errors import (
    StorystoneError,
    InputValidationError,
    StoryNotFoundError,
    EntityNotFoundError,
    DuplicateEntityError,
    AlreadyGeneratingError,
    StoryEndedError,
    UpstreamServiceError,
    MalformedGenerationResponse,
    PersistenceError,
)
from .text_processing import (
    remove_case_insensitive_duplicates,
    exclude_case_insensitive,
    edit_words,
)
from .story_arc import ArcPhase, StoryArc
from .retry import RetryPolicy, execute_with_retry

__all__ = [
    # Errors
    "StorystoneError",
    "InputValidationError",
    "StoryNotFoundError",
    "EntityNotFoundError",
    "DuplicateEntityError",
    "AlreadyGeneratingError",
    "StoryEndedError",
    "UpstreamServiceError",
    "MalformedGenerationResponse",
    "PersistenceError",
    # Text processing utilities
    "remove_case_insensitive_duplicates",
    "exclude_case_insensitive",
    "edit_words",
    # Story arc
    "ArcPhase",
    "StoryArc",
    # Retries
    "RetryPolicy",
    "execute_with_retry",
]
