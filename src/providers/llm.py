"""OpenAI chat-completions client used by the LLM sentiment scorer.

The client only talks to the API; deciding whether to call it (and what to
do when it fails) is the scorer's job.
"""

from typing import Any, Dict, Optional

from openai import OpenAI

from src.core.errors import LLMError
from src.core.logger import logger

DEFAULT_MODEL = "gpt-3.5-turbo"


class OpenAIChatClient:
    """Thin wrapper around ``OpenAI().chat.completions.create``.

    Args:
        api_key: OpenAI API key.
        model: Chat model name.
        max_tokens: Completion token cap.
        temperature: Sampling temperature.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 500,
        temperature: float = 0.3,
        timeout: float = 30.0,
    ) -> None:
        if not api_key:
            raise LLMError("OpenAIChatClient requires an API key")
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = OpenAI(api_key=api_key, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> Optional["OpenAIChatClient"]:
        """Build from the ``llm`` settings section; None when no key is configured."""
        llm_cfg = settings.get("llm", {})
        api_key = (llm_cfg.get("api_key") or "").strip()
        if not api_key:
            logger.info("OpenAIChatClient: no OPENAI_API_KEY configured — LLM disabled")
            return None
        return cls(
            api_key=api_key,
            model=llm_cfg.get("model", DEFAULT_MODEL),
            max_tokens=int(llm_cfg.get("max_tokens", 500)),
            temperature=float(llm_cfg.get("temperature", 0.3)),
            timeout=float(llm_cfg.get("timeout_seconds", 30)),
        )

    def complete(self, system: str, prompt: str) -> str:
        """Send one system + user exchange and return the assistant text.

        Raises:
            LLMError: On any API failure or an empty completion.
        """
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except Exception as exc:
            raise LLMError(f"OpenAI completion failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError("OpenAI returned an empty completion")
        return content
