"""Gemini API client with retry on transient failures."""
import time
import logging
from typing import Any, Callable, Dict, List, Optional
import httpx

from models.conversation import Turn
from services.errors import (
    ApiError,
    ConfigError,
    NoResponseError,
    RetriesExhaustedError,
    NETWORK_ERROR,
    TIMEOUT_ERROR,
)
from services.metrics import PerformanceMetrics
from services.retry import RetryPolicy
from config import (
    GEMINI_API_KEY,
    GEMINI_MODEL,
    GEMINI_BASE_URL,
    GENERATION_CONFIG,
    REQUEST_TIMEOUT,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
)

logger = logging.getLogger(__name__)


class GeminiClient:
    """Client for the Gemini generateContent endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = GEMINI_MODEL,
        base_url: str = GEMINI_BASE_URL,
        generation_config: Optional[Dict[str, Any]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
        metrics: Optional[PerformanceMetrics] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize Gemini client.

        Args:
            api_key: Gemini API key (defaults to GEMINI_API_KEY from environment)
            model: Model name, e.g. gemini-2.5-flash
            base_url: Models endpoint root
            generation_config: Sampling parameters sent with every request
            retry_policy: Attempt ceiling and backoff (defaults from config)
            timeout: Request timeout in seconds
            transport: Custom httpx transport (used by tests)
            metrics: Counters updated after every HTTP round trip
            clock: Time source used for latency measurement

        Raises:
            ConfigError: If no API key is available
        """
        self.api_key = api_key or GEMINI_API_KEY
        if not self.api_key:
            raise ConfigError("GEMINI_API_KEY must be provided or set in environment")

        self.model = model
        self.base_url = base_url.rstrip("/")
        self.generation_config = dict(generation_config or GENERATION_CONFIG)
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=MAX_RETRIES,
            base_delay=RETRY_BASE_DELAY
        )
        self.timeout = timeout
        self.transport = transport
        self.metrics = metrics
        self._clock = clock
        logger.info(f"GeminiClient initialized for model {model}")

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/{self.model}:generateContent"

    def build_payload(self, system_prompt: str, turns: List[Turn]) -> Dict[str, Any]:
        """
        Build the generateContent request body.

        Args:
            system_prompt: Instruction text sent as the system instruction
            turns: Conversation to replay, oldest first

        Returns:
            JSON-serializable request body
        """
        return {
            "systemInstruction": {
                "role": "model",
                "parts": [{"text": system_prompt}]
            },
            "contents": [turn.to_content() for turn in turns],
            "generationConfig": dict(self.generation_config)
        }

    def complete(self, system_prompt: str, turns: List[Turn]) -> str:
        """
        Ask the model for the next reply in the conversation.

        Rate limiting (429), unavailability (503) and transport failures
        are retried with exponential backoff; any other failure is raised
        immediately.

        Args:
            system_prompt: Instruction text
            turns: Conversation (already trimmed), oldest first

        Returns:
            Reply text

        Raises:
            ApiError: Non-retryable upstream failure
            NoResponseError: Successful response without reply text
            RetriesExhaustedError: Every attempt failed transiently
        """
        payload = self.build_payload(system_prompt, turns)
        max_attempts = self.retry_policy.max_attempts
        last_error: Optional[ApiError] = None

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = self.retry_policy.wait_before(attempt)
                logger.info(f"Retry {attempt - 1}/{max_attempts - 1} after {delay:.1f}s")

            try:
                return self._send(payload)
            except ApiError as e:
                if not e.transient:
                    logger.error(
                        f"Gemini API error: code={e.code}, status={e.status_code}, error={e}",
                        extra={"error_code": e.code, "error_details": e.details}
                    )
                    raise
                last_error = e
                logger.warning(
                    f"Transient Gemini API error on attempt {attempt}/{max_attempts}: "
                    f"code={e.code}, status={e.status_code}"
                )

        logger.error(f"All {max_attempts} Gemini API attempts failed: {last_error}")
        raise RetriesExhaustedError(max_attempts, last_error)

    def _send(self, payload: Dict[str, Any]) -> str:
        """Make one HTTP round trip and return the reply text."""
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json"
        }
        start_time = self._clock()

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.api_url, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            raise ApiError(
                f"Request timed out after {self.timeout}s",
                code=TIMEOUT_ERROR,
                transient=True,
                details={"original_error": str(e)}
            )
        except httpx.RequestError as e:
            raise ApiError(
                f"Network error: {e}",
                code=NETWORK_ERROR,
                transient=True,
                details={"original_error": str(e), "error_type": type(e).__name__}
            )

        latency_ms = int((self._clock() - start_time) * 1000)
        if self.metrics is not None:
            self.metrics.record_api_call(latency_ms)

        if response.status_code != 200:
            raise ApiError.from_status(response.status_code, response.text)

        try:
            response_json = response.json()
        except ValueError as e:
            raise NoResponseError(
                "Gemini API returned a non-JSON response",
                details={"original_error": str(e)}
            )

        text = self.extract_response_text(response_json)
        logger.info(
            f"Generated response: model={self.model}, "
            f"chars={len(text)}, latency={latency_ms}ms"
        )
        return text

    @staticmethod
    def extract_response_text(response_json: Any) -> str:
        """
        Pull `candidates[0].content.parts[0].text` out of a response body.

        Raises:
            NoResponseError: If the path is missing or the text is empty
        """
        try:
            text = response_json["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise NoResponseError(
                details={"finish_reason": _finish_reason(response_json)}
            )

        if not isinstance(text, str) or not text:
            raise NoResponseError(details={"finish_reason": _finish_reason(response_json)})
        return text


def _finish_reason(response_json: Any) -> Optional[str]:
    try:
        return response_json["candidates"][0].get("finishReason")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
