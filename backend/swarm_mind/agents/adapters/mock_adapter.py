"""Deterministic adapter for local development and repeatable tests.

Produces structured thoughts, patches and reviews without external API
calls. Suggested actions use the same free-text vocabulary a model would,
so the decision engine's parser is exercised end to end.
"""

import re

from .base import (
    CodeChange,
    PatchContext,
    PatchResult,
    ReasoningAdapter,
    ReasoningContext,
    ReasoningResult,
    ReviewResult,
)

MOCK_TOKENS_PER_CALL = 120

_REPO_REF = re.compile(r"([a-zA-Z0-9_-]+/[a-zA-Z0-9_.-]+)")


class MockReasoningAdapter(ReasoningAdapter):
    """Simple deterministic policy keyed on trigger and personality."""

    async def reason(self, ctx: ReasoningContext) -> ReasoningResult:
        repo_match = _REPO_REF.search(ctx.observation)
        repo_ref = repo_match.group(1) if repo_match else None
        trigger = ctx.trigger.lower()

        if trigger == "knowledge_synthesis":
            actions = [
                f"share_technique: {ctx.specialization} patterns from absorbed signals",
                f"explore_topic: {ctx.specialization}",
            ]
            conclusion = "Absorbed signals share a common engineering pattern."
            confidence = 0.7
        elif trigger == "repo_analysis" and repo_ref:
            actions = [f"study {repo_ref}", f"document {repo_ref} architecture notes"]
            if ctx.personality.boldness > 0.7:
                actions.append(f"fix_issue on {repo_ref}")
            conclusion = f"{repo_ref} has a clear structure worth documenting."
            confidence = 0.65
        else:
            actions = [f"explore_topic: {ctx.specialization}"]
            if repo_ref:
                actions.insert(0, f"study {repo_ref}")
            conclusion = f"Continue exploring {ctx.specialization}."
            confidence = 0.55

        return ReasoningResult(
            reasoning=f"mock:{ctx.agent_name}:{trigger}",
            conclusion=conclusion,
            suggested_actions=actions,
            confidence=confidence,
            tokens_used=MOCK_TOKENS_PER_CALL,
        )

    async def generate_patch(self, ctx: PatchContext) -> PatchResult:
        path = ctx.files[0].path if ctx.files else "NOTES.md"
        original = ctx.files[0].content[:200] if ctx.files else ""
        change = CodeChange(
            path=path,
            original=original,
            modified=f"{original}\n<!-- {ctx.objective[:80]} -->".strip(),
            explanation=f"mock change for: {ctx.objective[:80]}",
        )
        return PatchResult(changes=[change], tokens_used=MOCK_TOKENS_PER_CALL)

    async def review(self, ctx: PatchContext, changes: list[CodeChange]) -> ReviewResult:
        if not changes:
            return ReviewResult(
                passed=False,
                issues=["No changes produced"],
                score=2.0,
                tokens_used=MOCK_TOKENS_PER_CALL,
            )
        return ReviewResult(
            passed=True,
            issues=[],
            suggestions=["Add a test for the changed path"],
            score=7.0,
            tokens_used=MOCK_TOKENS_PER_CALL,
        )
