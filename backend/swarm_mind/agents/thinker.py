"""Reasoning facade used by agents.

Builds adapter contexts from agent state, calls the configured adapter and
falls back to the rule adapter whenever the primary one raises.
"""

import logging
from typing import Optional

from ..config import settings
from .adapters.base import (
    CodeChange,
    PatchContext,
    PatchResult,
    ReasoningAdapter,
    ReasoningContext,
    ReasoningResult,
    ReviewResult,
    SourceFile,
)
from .adapters.mock_adapter import MockReasoningAdapter
from .adapters.openai_adapter import OpenAIReasoningAdapter
from .adapters.rule_based import RuleBasedReasoningAdapter
from .types import AgentThought, AutonomousAgentState, Pheromone, RepoContext

logger = logging.getLogger(__name__)


def pick_adapter(mode: Optional[str] = None) -> ReasoningAdapter:
    mode = (mode or settings.ai_mode).lower()
    if mode == "mock":
        return MockReasoningAdapter()
    if mode == "openai":
        try:
            return OpenAIReasoningAdapter()
        except Exception as exc:
            logger.warning("openai adapter unavailable, using rule adapter reason=%s", exc)
            return RuleBasedReasoningAdapter()
    return RuleBasedReasoningAdapter()


class Thinker:
    """Turns agent observations into thoughts, patches and reviews."""

    def __init__(
        self,
        adapter: Optional[ReasoningAdapter] = None,
        fallback: Optional[ReasoningAdapter] = None,
    ) -> None:
        self.adapter = adapter or pick_adapter()
        self.fallback = fallback or RuleBasedReasoningAdapter()

    async def form_thought(
        self,
        agent: AutonomousAgentState,
        trigger: str,
        observation: str,
        context: str,
    ) -> tuple[AgentThought, int]:
        ctx = self._context(agent, trigger, observation, context)
        result = await self._reason(ctx)
        return self._to_thought(agent, trigger, observation, result), result.tokens_used

    async def analyze_repo(self, agent: AutonomousAgentState, repo_context: RepoContext) -> tuple[AgentThought, int]:
        repo = repo_context.repo
        files = "\n".join(f"  {f.path} (score: {f.score})" for f in repo_context.key_files[:8])
        issues = "\n".join(f"  #{i.number}: {i.title} [{i.difficulty}]" for i in repo_context.issues[:3])
        commits = "\n".join(f"  - {c[:80]}" for c in repo_context.recent_commits[:3])
        context = (
            f"Description: {repo.description}\n"
            f"Language: {repo.language} | Stars: {repo.stars}\n"
            f"Topics: {', '.join(repo.topics)}\n"
            f"README excerpt:\n{repo_context.readme_excerpt[:500]}\n"
            f"Key files:\n{files or '  (none scored)'}\n"
            f"Open issues:\n{issues or '  (none actionable)'}\n"
            f"Recent commits:\n{commits or '  (none)'}"
        )
        observation = f"Studied {repo.full_name}: {repo.description[:100]}"
        ctx = self._context(agent, "repo_analysis", observation, context)
        result = await self._reason(ctx)
        return self._to_thought(agent, "repo_analysis", observation, result), result.tokens_used

    async def synthesize_knowledge(
        self,
        agent: AutonomousAgentState,
        pheromones: list[Pheromone],
    ) -> tuple[AgentThought, int]:
        context = "\n".join(f"  [{p.domain}] {p.content[:150]}" for p in pheromones[:8])
        observation = f"Synthesized {len(pheromones)} pheromones across domains"
        ctx = self._context(agent, "knowledge_synthesis", observation, context)
        result = await self._reason(ctx)
        return self._to_thought(agent, "knowledge_synthesis", observation, result), result.tokens_used

    async def generate_code(
        self,
        agent: AutonomousAgentState,
        objective: str,
        files: list[SourceFile],
        constraints: str = "",
        previous_attempt: Optional[str] = None,
    ) -> PatchResult:
        ctx = PatchContext(
            reasoning=self._context(agent, "code_generation", objective, constraints),
            objective=objective,
            files=files,
            constraints=constraints,
            previous_attempt=previous_attempt,
        )
        try:
            return await self.adapter.generate_patch(ctx)
        except Exception as exc:
            logger.warning(
                "fallback to rule adapter agent=%s op=generate_patch reason=%s",
                agent.name,
                f"{type(exc).__name__}: {str(exc)[:160]}",
            )
            return await self.fallback.generate_patch(ctx)

    async def review_code(
        self,
        agent: AutonomousAgentState,
        changes: list[CodeChange],
        objective: str,
    ) -> ReviewResult:
        ctx = PatchContext(
            reasoning=self._context(agent, "code_review", objective, ""),
            objective=objective,
        )
        try:
            return await self.adapter.review(ctx, changes)
        except Exception as exc:
            logger.warning(
                "fallback to rule adapter agent=%s op=review reason=%s",
                agent.name,
                f"{type(exc).__name__}: {str(exc)[:160]}",
            )
            return await self.fallback.review(ctx, changes)

    async def _reason(self, ctx: ReasoningContext) -> ReasoningResult:
        try:
            return await self.adapter.reason(ctx)
        except Exception as exc:
            logger.warning(
                "fallback to rule adapter agent=%s trigger=%s reason=%s",
                ctx.agent_name,
                ctx.trigger,
                f"{type(exc).__name__}: {str(exc)[:160]}",
            )
            return await self.fallback.reason(ctx)

    def _context(self, agent: AutonomousAgentState, trigger: str, observation: str, context: str) -> ReasoningContext:
        return ReasoningContext(
            agent_name=agent.name,
            specialization=agent.specialization,
            personality=agent.personality,
            trigger=trigger,
            observation=observation,
            context=context,
            budget_remaining=agent.budget_remaining,
            repos_studied=len(agent.repos_studied),
        )

    def _to_thought(
        self,
        agent: AutonomousAgentState,
        trigger: str,
        observation: str,
        result: ReasoningResult,
    ) -> AgentThought:
        return AgentThought(
            agent_id=agent.id,
            trigger=trigger,
            observation=observation,
            reasoning=result.reasoning,
            conclusion=result.conclusion,
            suggested_actions=list(result.suggested_actions),
            confidence=result.confidence,
        )
