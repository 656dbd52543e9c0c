from __future__ import annotations

from prsage_core.errors import PrsageError, TransportError
from prsage_core.providers.base import JSON_REMINDER, BaseProvider, retry_after_seconds


class AnthropicProvider(BaseProvider):
    NAME = "anthropic"
    MODEL = "claude-sonnet-4-20250514"
    # Slightly warmer than OpenAI's default for more natural phrasing in
    # explanations; the JSON contract in the prompt keeps structure stable.
    TEMPERATURE = 0.3

    @property
    def client(self):
        if self._client is None:
            try:
                from anthropic import Anthropic
            except ImportError:
                raise ImportError(
                    "The 'anthropic' package is required for this provider. "
                    "Install it with: pip install anthropic"
                )
            self._client = Anthropic(api_key=self.api_key, timeout=self.timeout, max_retries=self.max_retries)
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
        # Imported inside the method because the anthropic package is optional;
        # the client property already validated it is installed.
        from anthropic.types import TextBlock

        # Claude has no JSON response mode; the instruction rides in the user turn.
        content = f"{user_prompt}\n\n{JSON_REMINDER}" if json_response else user_prompt
        response = self.client.messages.create(
            model=model,
            system=system_prompt,
            messages=[{"role": "user", "content": content}],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()

    def _translate_error(self, error: Exception) -> PrsageError:
        import anthropic

        if isinstance(error, anthropic.APIConnectionError):
            # Also covers APITimeoutError.
            return TransportError(f"anthropic connection failed: {error}", provider=self.NAME)
        if isinstance(error, anthropic.APIStatusError):
            return self._error_for_status(error.status_code, error.message, retry_after_seconds(error.response))
        return super()._translate_error(error)
