"""Shared data contracts for pluggable reasoning adapters."""

from dataclasses import dataclass, field
from typing import Optional

from ..types import AgentPersonality


@dataclass
class ReasoningContext:
    """Complete input context an adapter receives when reasoning."""

    agent_name: str
    specialization: str
    personality: AgentPersonality
    trigger: str
    observation: str
    context: str
    budget_remaining: int
    repos_studied: int = 0


@dataclass
class ReasoningResult:
    """Normalized structured thought returned by every adapter."""

    reasoning: str
    conclusion: str
    suggested_actions: list[str] = field(default_factory=list)
    confidence: float = 0.5
    tokens_used: int = 0


@dataclass
class SourceFile:
    path: str
    content: str


@dataclass
class CodeChange:
    path: str
    original: str
    modified: str
    explanation: str


@dataclass
class PatchContext:
    """Input for code generation and review."""

    reasoning: ReasoningContext
    objective: str
    files: list[SourceFile] = field(default_factory=list)
    constraints: str = ""
    previous_attempt: Optional[str] = None


@dataclass
class PatchResult:
    changes: list[CodeChange] = field(default_factory=list)
    tokens_used: int = 0


@dataclass
class ReviewResult:
    passed: bool
    issues: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    score: float = 0.0  # 0-10
    tokens_used: int = 0


def degraded_reasoning(raw: str = "", conclusion: str = "Could not form structured thought") -> ReasoningResult:
    """Low-confidence thought with no actions, used when output cannot be parsed."""

    return ReasoningResult(
        reasoning=raw[:200],
        conclusion=conclusion,
        suggested_actions=[],
        confidence=0.3,
    )


class ReasoningAdapter:
    """Minimal interface implemented by all reasoning backends."""

    async def reason(self, ctx: ReasoningContext) -> ReasoningResult:
        raise NotImplementedError

    async def generate_patch(self, ctx: PatchContext) -> PatchResult:
        raise NotImplementedError

    async def review(self, ctx: PatchContext, changes: list[CodeChange]) -> ReviewResult:
        raise NotImplementedError
