"""Token usage accounting shared by every provider in a session."""

import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

# USD per million tokens
INPUT_COST_PER_MILLION = 3.0
OUTPUT_COST_PER_MILLION = 15.0


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def of(cls, prompt_tokens: int = 0, completion_tokens: int = 0) -> "TokenUsage":
        return cls(prompt_tokens, completion_tokens, prompt_tokens + completion_tokens)

    @classmethod
    def from_openai(cls, usage: Optional[Dict[str, Any]]) -> "TokenUsage":
        """Map an OpenAI-style ``usage`` object."""
        if not isinstance(usage, dict):
            return cls()
        prompt = int(usage.get("prompt_tokens") or 0)
        completion = int(usage.get("completion_tokens") or 0)
        total = int(usage.get("total_tokens") or (prompt + completion))
        return cls(prompt, completion, total)

    @classmethod
    def from_anthropic(cls, usage: Optional[Dict[str, Any]]) -> "TokenUsage":
        """Map an Anthropic ``usage`` object (input/output naming)."""
        if not isinstance(usage, dict):
            return cls()
        return cls.of(
            int(usage.get("input_tokens") or 0),
            int(usage.get("output_tokens") or 0),
        )

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            self.prompt_tokens + other.prompt_tokens,
            self.completion_tokens + other.completion_tokens,
            self.total_tokens + other.total_tokens,
        )

    def is_empty(self) -> bool:
        return not (self.prompt_tokens or self.completion_tokens or self.total_tokens)


class UsageTracker:
    """Thread-safe running totals of tokens and successful requests.

    One tracker is attached to every provider in a routed chain, so totals
    reflect whichever provider actually served each call. The lock is held
    only across the integer updates.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._usage = TokenUsage()
        self._requests = 0

    def add(self, usage: TokenUsage, request: bool = True) -> None:
        with self._lock:
            self._usage = self._usage + usage
            if request:
                self._requests += 1

    def record_request(self) -> None:
        with self._lock:
            self._requests += 1

    def snapshot(self) -> TokenUsage:
        with self._lock:
            return self._usage

    def requests(self) -> int:
        with self._lock:
            return self._requests

    def estimated_cost_usd(self) -> float:
        usage = self.snapshot()
        return (
            usage.prompt_tokens * INPUT_COST_PER_MILLION
            + usage.completion_tokens * OUTPUT_COST_PER_MILLION
        ) / 1_000_000

    def __repr__(self) -> str:
        usage = self.snapshot()
        return (
            f"UsageTracker(requests={self.requests()}, prompt={usage.prompt_tokens}, "
            f"completion={usage.completion_tokens}, total={usage.total_tokens})"
        )
