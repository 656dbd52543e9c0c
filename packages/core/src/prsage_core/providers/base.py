"""Base provider implementing the Template Method pattern.

Every provider exposes the same primitive used by the review orchestrator and
the explainer:

    call() → _call_api()           ← only this differs per provider
           → _translate_error()    ← SDK exception → prsage error taxonomy

Subclasses implement:
  - __init__: store the API key and build the SDK client lazily
  - _call_api: make one raw API call and return the text response
  - _translate_error: map the SDK's exceptions onto prsage errors

Retries and timeouts belong to the SDK clients (``max_retries`` and
``timeout`` are passed through at construction); this layer makes exactly
one call and reports exactly one outcome.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

from prsage_core.errors import ConfigurationError, PrsageError, RateLimitError, TransportError, ValidationError

logger = logging.getLogger(__name__)

_MAX_TOKENS = 4096
_TEMPERATURE = 0.3

JSON_REMINDER = "Remember to respond ONLY with valid JSON as specified in your instructions."


class BaseProvider(ABC):
    NAME: str = "base"
    MODEL: str = ""
    MAX_TOKENS: int = _MAX_TOKENS
    TEMPERATURE: float = _TEMPERATURE

    def __init__(self, api_key: str | None, model: str | None = None, timeout: float = 120, max_retries: int = 2):
        self.api_key = api_key
        self.model = model or self.MODEL
        self.timeout = timeout
        self.max_retries = max_retries
        self._client = None

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def is_available(self) -> bool:
        """A provider is available when it has credentials; no network probe."""
        return bool(self.api_key)

    def call(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_response: bool = False,
    ) -> str:
        """Make one completion call and return the raw text.

        Raises ConfigurationError when the provider has no credentials and a
        translated TransportError/RateLimitError/ValidationError when the SDK
        call fails.
        """
        if not self.is_available():
            raise ConfigurationError(f"{self.NAME} API key not configured", provider=self.NAME)

        model = model or self.model
        temperature = self.TEMPERATURE if temperature is None else temperature
        max_tokens = max_tokens or self.MAX_TOKENS

        logger.info("Calling %s (model=%s, temperature=%s)", self.NAME, model, temperature)
        start = time.monotonic()
        try:
            text = self._call_api(system_prompt, user_prompt, model, temperature, max_tokens, json_response)
        except PrsageError:
            raise
        except ImportError as e:
            raise ConfigurationError(str(e), provider=self.NAME) from e
        except Exception as e:
            translated = self._translate_error(e)
            logger.error("%s call failed: %s", self.NAME, translated.message)
            raise translated from e

        logger.info("%s call succeeded in %dms", self.NAME, int((time.monotonic() - start) * 1000))
        return text or ""

    # ------------------------------------------------------------------ #
    # Abstract — implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float,
        max_tokens: int,
        json_response: bool,
    ) -> str:
        """Make a single API call and return the raw text response."""

    def _translate_error(self, error: Exception) -> PrsageError:
        """Map an SDK exception onto the prsage taxonomy.

        The default treats anything unrecognised as a transport failure;
        providers override this with their SDK's exception classes.
        """
        return TransportError(f"{self.NAME} request failed: {error}", provider=self.NAME)

    def _error_for_status(self, status_code: int, detail: str, retry_after: float | None = None) -> PrsageError:
        """Classify an HTTP error status returned by a provider API."""
        if status_code == 429:
            return RateLimitError(
                f"{self.NAME} API rate limit exceeded: {detail}", provider=self.NAME, retry_after=retry_after
            )
        if status_code in (401, 403):
            return ConfigurationError(f"{self.NAME} rejected the credentials: {detail}", provider=self.NAME)
        if status_code >= 500:
            return TransportError(
                f"{self.NAME} server error ({status_code}): {detail}", provider=self.NAME, status_code=status_code
            )
        return ValidationError(
            f"{self.NAME} rejected the request ({status_code}): {detail}",
            [detail],
            provider=self.NAME,
            status_code=status_code,
        )


def retry_after_seconds(response) -> float | None:
    """Read a Retry-After header off an httpx response, if there is one."""
    if response is None:
        return None
    try:
        return float(response.headers.get("retry-after"))
    except (TypeError, ValueError):
        return None
