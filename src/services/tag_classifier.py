"""
Tag Classifier Client

Sends normalized tags (`tag_type:source:value`) to the hosted classifier
space and returns its predictions:

    [{"text": "plot:qloo:Heist", "predicted_label": "plot_description"}, ...]

The classifier is an opaque model; this client only validates the shape of
what comes back. gradio_client is synchronous, so calls run in a thread.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

from gradio_client import Client

from src.services.errors import UpstreamServiceError
from src.services.logger import get_logger
from src.services.retry import RetryPolicy, execute_with_retry, is_transient_error

logger = logging.getLogger(__name__)

SERVICE_NAME = "tag classifier"


def parse_predictions(result: Any) -> List[Dict[str, str]]:
    """
    Extract the prediction list from a classifier response.

    Accepts the single output directly, wrapped in a one-element list/tuple,
    or serialized as JSON text.

    Raises:
        UpstreamServiceError: for any other shape
    """
    if isinstance(result, (list, tuple)) and len(result) == 1:
        result = result[0]

    if isinstance(result, str):
        try:
            result = json.loads(result)
        except json.JSONDecodeError:
            raise UpstreamServiceError(SERVICE_NAME, "Classifier response is not JSON")

    if not isinstance(result, dict) or not isinstance(result.get("predictions"), list):
        raise UpstreamServiceError(SERVICE_NAME, "Invalid or unexpected model response structure")

    predictions = []
    for item in result["predictions"]:
        if isinstance(item, dict) and "text" in item and "predicted_label" in item:
            predictions.append({"text": str(item["text"]), "predicted_label": str(item["predicted_label"])})
        else:
            logger.warning(f"⚠️ Skipping malformed classifier prediction: {item!r}")
    return predictions


class TagClassifierClient:
    """Client for the hosted narrative tag classifier"""

    def __init__(
        self,
        space: str,
        hf_token: Optional[str] = None,
        api_name: str = "/predict",
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.space = space
        self.hf_token = hf_token
        self.api_name = api_name
        self.retry_policy = retry_policy or RetryPolicy()
        self._client: Optional[Client] = None

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = Client(self.space, self.hf_token)
        return self._client

    def _predict_sync(self, tags: List[str]) -> Any:
        return self._get_client().predict(tags=tags, api_name=self.api_name)

    async def _predict_once(self, tags: List[str]) -> List[Dict[str, str]]:
        start = time.time()
        try:
            result = await asyncio.to_thread(self._predict_sync, tags)
        except (ValueError, OSError, RuntimeError) as e:
            # gradio_client surfaces space errors as AppError (a ValueError) and
            # connection problems as httpx/OS errors
            get_logger().upstream_call(SERVICE_NAME, "predict", time.time() - start, "error", str(e))
            self._client = None
            raise UpstreamServiceError(SERVICE_NAME, f"{type(e).__name__}: {e}", transient=is_transient_error(e))

        get_logger().upstream_call(SERVICE_NAME, "predict", time.time() - start, detail=f"{len(tags)} tags")
        return parse_predictions(result)

    async def predict(self, tags: List[str]) -> List[Dict[str, str]]:
        """
        Classify tags into narrative buckets.

        Returns:
            Predictions as {text, predicted_label} dicts; empty for no tags
        """
        if not tags:
            return []
        return await execute_with_retry(
            self._predict_once, tags, policy=self.retry_policy, service=SERVICE_NAME
        )
