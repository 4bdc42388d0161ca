"""Completion service backed by the Anthropic Messages API."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from .errors import CompletionFailure, ModelParseFailure

logger = logging.getLogger(__name__)


@dataclass
class Completion:
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0


def parse_json_response(text: str) -> dict:
    """Extract a JSON object from model output, handling markdown code blocks.

    Raises:
        ModelParseFailure: no JSON object could be recovered.
    """
    text = (text or "").strip()
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    # Try extracting from ```json ... ``` or ``` ... ```
    match = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", text, re.DOTALL)
    if match:
        try:
            data = json.loads(match.group(1).strip())
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    # Try finding first { ... } block
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if match:
        try:
            data = json.loads(match.group(0))
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    raise ModelParseFailure(f"No JSON object in model output: {text[:100]!r}")


class CompletionClient:
    """Thin wrapper over ``anthropic.Anthropic().messages.create``.

    Without an API key the client stays unconfigured and ``complete`` raises
    CompletionFailure.
    """

    def __init__(self, config: dict[str, Any]):
        self.model = config.get("claude_model", "claude-sonnet-4-20250514")
        self.pricing = config.get("pricing", {}).get(self.model, {})
        self._client = None
        api_key = config.get("claude_api_key")
        if api_key:
            import anthropic
            self._client = anthropic.Anthropic(api_key=api_key)
        else:
            logger.warning("No Claude API key configured; answers will fall back to retrieved snippets")

    @property
    def configured(self) -> bool:
        return self._client is not None

    def complete(
        self,
        prompt: str,
        system: str | None = None,
        max_tokens: int = 1500,
        json_mode: bool = True,
    ) -> Completion:
        """Run one completion.

        With json_mode the assistant turn is prefilled with "{" so the reply
        is a JSON object; the brace is put back on the returned text.
        """
        if self._client is None:
            raise CompletionFailure(
                "Claude API key required. Set ANTHROPIC_API_KEY or claude_api_key in config."
            )

        messages = [{"role": "user", "content": prompt}]
        if json_mode:
            messages.append({"role": "assistant", "content": "{"})

        kwargs: dict[str, Any] = {"model": self.model, "max_tokens": max_tokens, "messages": messages}
        if system:
            kwargs["system"] = system

        try:
            response = self._client.messages.create(**kwargs)
        except Exception as e:
            raise CompletionFailure(f"Completion request failed: {e}") from e

        text = "".join(getattr(block, "text", "") for block in response.content)
        if json_mode:
            text = "{" + text
        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "input_tokens", 0) or 0
        output_tokens = getattr(usage, "output_tokens", 0) or 0
        cost = (input_tokens * float(self.pricing.get("input", 0.0))
                + output_tokens * float(self.pricing.get("output", 0.0))) / 1_000_000
        return Completion(
            text=text,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=cost,
        )
