"""
Gemini Generation Service

Thin async wrapper over google.generativeai for the three generation calls:
- story start: structured JSON ({title, story, pool_words})
- continuation: chat over the stored history, plain text
- translation: single prompt, plain text

SDK errors are mapped to UpstreamServiceError; 429 / 5xx / deadline errors
are marked transient so the retry helper can back off.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from src.models import StoryTurn
from src.services.errors import UpstreamServiceError
from src.services.logger import get_logger

logger = logging.getLogger(__name__)

SERVICE_NAME = "gemini"

_TRANSIENT_SDK_ERRORS = (
    google_exceptions.ResourceExhausted,
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
)


def _to_upstream_error(error: Exception) -> UpstreamServiceError:
    """Map an SDK exception onto the error taxonomy"""
    status = getattr(error, "code", None)
    status = status if isinstance(status, int) else None
    transient = isinstance(error, _TRANSIENT_SDK_ERRORS)
    return UpstreamServiceError(SERVICE_NAME, str(error), upstream_status=status, transient=transient)


def _response_text(response: Any) -> str:
    """
    Text of a generation response.

    `response.text` raises ValueError when the candidate was blocked or
    has no parts; both count as an empty generation.
    """
    try:
        text = response.text
    except ValueError as e:
        raise UpstreamServiceError(SERVICE_NAME, f"Generation returned no text: {e}")
    if not text or not text.strip():
        raise UpstreamServiceError(SERVICE_NAME, "Generation returned empty text")
    return text


def history_to_contents(history: List[StoryTurn]) -> List[Dict[str, Any]]:
    """Stored turns in the content shape the SDK expects"""
    return [
        {"role": turn.role, "parts": [part.text for part in turn.parts]}
        for turn in history
    ]


class GeminiService:
    """Story generation over Gemini"""

    def __init__(self, api_key: Optional[str], model: str = "gemini-2.5-flash"):
        if api_key:
            genai.configure(api_key=api_key)
        else:
            logger.warning("⚠️ GEMINI_API_KEY not set; generation calls will fail")
        self.model_name = model

    def _model(self, temperature: float, response_schema: Optional[Dict] = None) -> "genai.GenerativeModel":
        config = {"temperature": temperature}
        if response_schema is not None:
            config["response_mime_type"] = "application/json"
            config["response_schema"] = response_schema
        return genai.GenerativeModel(self.model_name, generation_config=config)

    async def generate_json(self, prompt: str, response_schema: Dict, temperature: float) -> str:
        """
        Single-turn generation constrained to a JSON schema.

        Returns:
            Raw JSON text (validated by the caller)
        """
        start = time.time()
        try:
            response = await self._model(temperature, response_schema).generate_content_async(prompt)
        except google_exceptions.GoogleAPIError as e:
            get_logger().upstream_call(SERVICE_NAME, "generate_json", time.time() - start, "error", str(e))
            raise _to_upstream_error(e)
        get_logger().upstream_call(SERVICE_NAME, "generate_json", time.time() - start)
        return _response_text(response)

    async def continue_chat(self, history: List[StoryTurn], prompt: str, temperature: float) -> str:
        """
        Send `prompt` as the next user turn of a chat seeded with `history`.

        Returns:
            The model's reply text
        """
        start = time.time()
        try:
            chat = self._model(temperature).start_chat(history=history_to_contents(history))
            response = await chat.send_message_async(prompt)
        except google_exceptions.GoogleAPIError as e:
            get_logger().upstream_call(SERVICE_NAME, "continue_chat", time.time() - start, "error", str(e))
            raise _to_upstream_error(e)
        get_logger().upstream_call(
            SERVICE_NAME, "continue_chat", time.time() - start, detail=f"{len(history)} turns"
        )
        return _response_text(response).strip()

    async def generate_text(self, prompt: str, temperature: float) -> str:
        """Single-turn plain text generation"""
        start = time.time()
        try:
            response = await self._model(temperature).generate_content_async(prompt)
        except google_exceptions.GoogleAPIError as e:
            get_logger().upstream_call(SERVICE_NAME, "generate_text", time.time() - start, "error", str(e))
            raise _to_upstream_error(e)
        get_logger().upstream_call(SERVICE_NAME, "generate_text", time.time() - start)
        return _response_text(response).strip()
