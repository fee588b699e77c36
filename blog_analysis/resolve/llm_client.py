"""Short LLM completions for discovery: Anthropic first, OpenAI as fallback."""

from __future__ import annotations

import asyncio
import logging

from blog_analysis.config import Config

logger = logging.getLogger(__name__)

# Per-call ceiling (seconds)
LLM_TIMEOUT = 30


class _BillingError(Exception):
    """Anthropic refused the call for credit/billing reasons."""


class LLMRouter:
    """Routes prompts to Anthropic, falling back to OpenAI.

    A billing error from Anthropic disables it for the lifetime of the
    router; any other Anthropic error only falls back for that call.
    """

    def __init__(
        self,
        anthropic_key: str = "",
        openai_key: str = "",
        anthropic_model: str = "claude-3-5-haiku-20241022",
        openai_model: str = "gpt-4o-mini",
        timeout: float = LLM_TIMEOUT,
    ):
        self.anthropic_key = anthropic_key
        self.openai_key = openai_key
        self.anthropic_model = anthropic_model
        self.openai_model = openai_model
        self.timeout = timeout
        self.anthropic_disabled = False
        self.last_provider: str | None = None

    @classmethod
    def from_config(cls, config: Config) -> LLMRouter:
        return cls(
            anthropic_key=config.anthropic_api_key,
            openai_key=config.openai_api_key,
            anthropic_model=config.discovery_model,
            openai_model=config.openai_discovery_model,
        )

    async def complete(self, prompt: str, system: str = "", max_tokens: int = 100) -> str:
        if self.anthropic_key and not self.anthropic_disabled:
            try:
                text = await asyncio.wait_for(
                    self._anthropic(prompt, system, max_tokens), timeout=self.timeout,
                )
                self.last_provider = "anthropic"
                return text
            except _BillingError:
                logger.warning("Anthropic billing error, using OpenAI for the rest of this run")
                self.anthropic_disabled = True
            except asyncio.TimeoutError:
                if not self.openai_key:
                    raise RuntimeError(f"Anthropic call timed out after {self.timeout:.0f}s")
                logger.warning("Anthropic call timed out, falling back to OpenAI")
            except Exception as e:
                if not self.openai_key:
                    raise
                logger.warning("Anthropic error (%s), falling back to OpenAI", e)

        if not self.openai_key:
            raise RuntimeError("No LLM provider available: set ANTHROPIC_API_KEY or OPENAI_API_KEY")

        text = await asyncio.wait_for(
            self._openai(prompt, system, max_tokens), timeout=self.timeout,
        )
        self.last_provider = "openai"
        return text

    async def _anthropic(self, prompt: str, system: str, max_tokens: int) -> str:
        import anthropic

        client = anthropic.AsyncAnthropic(api_key=self.anthropic_key)
        extra = {"system": system} if system else {}
        try:
            response = await client.messages.create(
                model=self.anthropic_model,
                max_tokens=max_tokens,
                temperature=0,
                messages=[{"role": "user", "content": prompt}],
                **extra,
            )
        except anthropic.APIStatusError as e:
            msg = str(e).lower()
            if e.status_code in (400, 401, 402) and any(w in msg for w in ("credit", "balance", "billing")):
                raise _BillingError(str(e)) from e
            raise
        return response.content[0].text

    async def _openai(self, prompt: str, system: str, max_tokens: int) -> str:
        from openai import AsyncOpenAI

        client = AsyncOpenAI(api_key=self.openai_key)
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        response = await client.chat.completions.create(
            model=self.openai_model,
            max_tokens=max_tokens,
            temperature=0,
            messages=messages,
        )
        return response.choices[0].message.content or ""
