from __future__ import annotations

try:
    import openai as _openai
except ImportError:
    _openai = None  # type: ignore[assignment]

from prsage_core.errors import PrsageError, TransportError
from prsage_core.providers.base import BaseProvider, retry_after_seconds


class OpenAIProvider(BaseProvider):
    NAME = "openai"
    MODEL = "gpt-4o"
    # Lower than Anthropic's default to lean toward deterministic,
    # structured JSON output.
    TEMPERATURE = 0.2

    @property
    def client(self):
        if self._client is None:
            if _openai is None:
                raise ImportError(
                    "The 'openai' package is required for this provider. Install it with: pip install openai"
                )
            self._client = _openai.OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=self.max_retries)
        return self._client

    def _call_api(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float,
        max_tokens: int,
        json_response: bool,
    ) -> str:
        kwargs = {"response_format": {"type": "json_object"}} if json_response else {}
        response = self.client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )
        return response.choices[0].message.content or ""

    def _translate_error(self, error: Exception) -> PrsageError:
        if _openai is not None:
            if isinstance(error, _openai.APIConnectionError):
                # Also covers APITimeoutError.
                return TransportError(f"openai connection failed: {error}", provider=self.NAME)
            if isinstance(error, _openai.APIStatusError):
                return self._error_for_status(error.status_code, error.message, retry_after_seconds(error.response))
        return super()._translate_error(error)
