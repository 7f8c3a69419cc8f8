"""
Error taxonomy for Storystone

Every failure that crosses the API boundary is one of these. Each carries the
HTTP status it maps to and a short public message; upstream response bodies
are never copied into `public_message`.
"""

from typing import Optional


class StorystoneError(Exception):
    """Base class for pipeline errors"""

    status_code: int = 500
    public_message: str = "An internal server error occurred."
    # Key of the JSON body field the web client reads ("error" or "message")
    body_key: str = "error"

    def __init__(self, message: Optional[str] = None, *, public_message: Optional[str] = None):
        super().__init__(message or self.public_message)
        if public_message:
            self.public_message = public_message

    def to_body(self) -> dict:
        return {self.body_key: self.public_message}


class InputValidationError(StorystoneError):
    """Missing or malformed request input (user-fixable)"""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, public_message=message)


class StoryNotFoundError(StorystoneError):
    status_code = 404
    body_key = "message"

    def __init__(self, story_id: str):
        self.story_id = story_id
        super().__init__(
            f"Story {story_id} not found",
            public_message=f"Story with ID '{story_id}' not found.",
        )


class EntityNotFoundError(StorystoneError):
    """The recommendation service has no entity for the id"""
    status_code = 404
    body_key = "message"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(
            f"Entity {entity_id} not found",
            public_message=f"Entity with ID '{entity_id}' not found.",
        )


class DuplicateEntityError(StorystoneError):
    """Entity already stored as a narrative profile (unique key violation)"""
    # The web client expects 404 + message for an already-added entity
    status_code = 404
    body_key = "message"
    public_message = "The entity is already added"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"Entity {entity_id} already has a narrative profile")


class AlreadyGeneratingError(StorystoneError):
    """Another continuation holds the story's generation flag"""
    status_code = 409
    public_message = "The next segment of this story is already being generated."

    def __init__(self, story_id: str):
        self.story_id = story_id
        super().__init__(f"Story {story_id} is already generating")


class StoryEndedError(StorystoneError):
    """The story reached its final segment; continuation is refused"""
    status_code = 409
    public_message = "This story has already ended."

    def __init__(self, story_id: str = ""):
        self.story_id = story_id
        super().__init__(f"Story {story_id} has ended" if story_id else None)


class UpstreamServiceError(StorystoneError):
    """
    Qloo, tag classifier or Gemini returned non-2xx or an unusable payload.

    `transient` marks errors worth retrying (429, 5xx, timeouts).
    """
    status_code = 502

    def __init__(
        self,
        service: str,
        message: str,
        upstream_status: Optional[int] = None,
        transient: bool = False,
    ):
        self.service = service
        self.upstream_status = upstream_status
        self.transient = transient
        status_str = f" (HTTP {upstream_status})" if upstream_status else ""
        super().__init__(
            f"{service}{status_str}: {message}",
            public_message=f"The {service} service encountered an issue. Please try again.",
        )


class MalformedGenerationResponse(UpstreamServiceError):
    """Generation output is not the JSON object that was requested"""

    def __init__(self, message: str):
        super().__init__("generation", message)
        self.public_message = "The AI could not generate a valid response for the story."


class PersistenceError(StorystoneError):
    """Store read/write failure"""
    status_code = 500
    public_message = "A database error occurred while processing your request."

    def __init__(self, operation: str, path: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.path = path
        detail = f": {cause}" if cause else ""
        super().__init__(f"Storage {operation} failed for {path}{detail}")
