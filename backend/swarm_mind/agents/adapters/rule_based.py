"""Rule-based fallback adapter used when model calls fail."""

from .base import (
    CodeChange,
    PatchContext,
    PatchResult,
    ReasoningAdapter,
    ReasoningContext,
    ReasoningResult,
    ReviewResult,
)


class RuleBasedReasoningAdapter(ReasoningAdapter):
    """Generate lightweight deterministic, low-confidence thoughts."""

    async def reason(self, ctx: ReasoningContext) -> ReasoningResult:
        trigger = ctx.trigger.lower()
        if trigger == "knowledge_synthesis":
            actions = [f"explore_topic: {ctx.specialization}"]
            if ctx.personality.sociability > 0.5:
                actions.insert(0, f"share_technique: patterns noticed by {ctx.agent_name}")
            return ReasoningResult(
                reasoning=f"{ctx.agent_name} compared absorbed signals without a reasoning model.",
                conclusion="Absorbed signals overlap with current focus; keep exploring.",
                suggested_actions=actions,
                confidence=0.35,
            )
        if trigger == "repo_analysis":
            return ReasoningResult(
                reasoning=f"{ctx.agent_name} skimmed repository metadata only.",
                conclusion="Repository looks worth a closer study.",
                suggested_actions=["study"],
                confidence=0.3,
            )
        return ReasoningResult(
            reasoning=f"{ctx.agent_name} continues on {ctx.specialization} at low confidence.",
            conclusion=f"Keep exploring {ctx.specialization}.",
            suggested_actions=[f"explore_topic: {ctx.specialization}"],
            confidence=0.3,
        )

    async def generate_patch(self, ctx: PatchContext) -> PatchResult:
        return PatchResult(changes=[])

    async def review(self, ctx: PatchContext, changes: list[CodeChange]) -> ReviewResult:
        return ReviewResult(
            passed=False,
            issues=["No reviewer available in rule mode"],
            suggestions=[],
            score=3.0,
        )
