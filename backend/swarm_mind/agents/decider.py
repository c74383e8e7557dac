"""Decision engine: turn observations into a prioritized, sampled action.

Candidates come from four generators (recent thoughts, discovered repos,
channel activity, and an always-available exploration fallback). Each is
costed, scored with a fixed weighted sum of six signals, and one is drawn by
temperature-controlled softmax sampling.
"""

import math
import random
import re
from typing import Iterable, Optional

from .channel import PheromoneChannel
from .types import (
    ActionKind,
    AgentAction,
    AgentDecision,
    AgentThought,
    AutonomousAgentState,
    DecisionCost,
    DecisionResult,
    DecisionStatus,
    Document,
    ExploreTopic,
    GitHubIssue,
    GitHubRepo,
    Refactor,
    RiskLevel,
    ShareTechnique,
    StudyRepo,
)

SCORE_WEIGHTS = {
    "base_priority": 0.20,
    "cost_efficiency": 0.25,
    "staleness": 0.15,
    "risk_penalty": 0.20,
    "swarm_alignment": 0.10,
    "personal_fit": 0.10,
}

# fix_issue and contribute_pr are never offered for autonomous execution.
ACTION_PRIORITIES: dict[ActionKind, float] = {
    ActionKind.share_technique: 0.9,
    ActionKind.study_repo: 0.85,
    ActionKind.explore_topic: 0.75,
    ActionKind.document: 0.6,
    ActionKind.write_code: 0.4,
    ActionKind.refactor: 0.3,
    ActionKind.fix_issue: 0.05,
    ActionKind.contribute_pr: 0.05,
}

TOKEN_ESTIMATES: dict[ActionKind, int] = {
    ActionKind.explore_topic: 800,
    ActionKind.study_repo: 3000,
    ActionKind.fix_issue: 8000,
    ActionKind.write_code: 10000,
    ActionKind.refactor: 7000,
    ActionKind.document: 4000,
    ActionKind.share_technique: 1500,
    ActionKind.contribute_pr: 12000,
}

TIME_ESTIMATES_MS: dict[ActionKind, int] = {
    ActionKind.explore_topic: 5000,
    ActionKind.study_repo: 15000,
    ActionKind.fix_issue: 45000,
    ActionKind.write_code: 60000,
    ActionKind.refactor: 40000,
    ActionKind.document: 20000,
    ActionKind.share_technique: 8000,
    ActionKind.contribute_pr: 90000,
}

RISK_LEVELS: dict[ActionKind, RiskLevel] = {
    ActionKind.explore_topic: RiskLevel.low,
    ActionKind.study_repo: RiskLevel.low,
    ActionKind.fix_issue: RiskLevel.medium,
    ActionKind.write_code: RiskLevel.medium,
    ActionKind.refactor: RiskLevel.medium,
    ActionKind.document: RiskLevel.low,
    ActionKind.share_technique: RiskLevel.low,
    ActionKind.contribute_pr: RiskLevel.high,
}

RISK_MULTIPLIERS: dict[RiskLevel, float] = {
    RiskLevel.low: 0.0,
    RiskLevel.medium: 0.1,
    RiskLevel.high: 0.2,
}

PERSONALITY_TRAITS: dict[ActionKind, str] = {
    ActionKind.study_repo: "curiosity",
    ActionKind.explore_topic: "curiosity",
    ActionKind.fix_issue: "boldness",
    ActionKind.contribute_pr: "boldness",
    ActionKind.share_technique: "sociability",
    ActionKind.refactor: "diligence",
    ActionKind.document: "diligence",
    ActionKind.write_code: "",
}

EXCLUDED_KINDS = frozenset({ActionKind.fix_issue, ActionKind.contribute_pr})
THOUGHT_WINDOW = 5
STALENESS_WINDOW = 10
SHARE_MIN_PHEROMONES = 5
SHARE_MIN_SOCIABILITY = 0.5
DEFAULT_TEMPERATURE = 0.3
SWITCH_ON_SUCCESS = 0.3
SWITCH_ON_FAILURE = 0.7

_REPO_REF = re.compile(r"([a-zA-Z0-9_-]+)/([a-zA-Z0-9_.-]+)")
_ISSUE_REF = re.compile(r"#(\d+)")
_PR_WORD = re.compile(r"\bprs?\b")


def estimate_cost(action: AgentAction) -> DecisionCost:
    kind = action.kind
    return DecisionCost(
        estimated_tokens=TOKEN_ESTIMATES[kind],
        estimated_time_ms=TIME_ESTIMATES_MS[kind],
        risk_level=RISK_LEVELS[kind],
    )


def parse_suggested_action(
    suggestion: str,
    repos: list[GitHubRepo],
    issues: list[GitHubIssue],
) -> Optional[AgentAction]:
    """Map one free-text suggestion onto a structured action, or ``None``.

    Fix and contribute intents are softened into ``study_repo`` on the repo
    they reference.
    """

    text = suggestion.strip()
    lower = text.lower()
    if not lower:
        return None

    if lower.startswith("fix_issue") or "fix issue" in lower or "fix_issue" in lower:
        issue_match = _ISSUE_REF.search(text)
        if issue_match:
            number = int(issue_match.group(1))
            for issue in issues:
                if issue.number == number:
                    return StudyRepo(owner=issue.owner, repo=issue.repo)
        if issues:
            return StudyRepo(owner=issues[0].owner, repo=issues[0].repo)
        return _first_repo_study(repos)

    if lower.startswith("study") or "study_repo" in lower:
        repo_match = _REPO_REF.search(text)
        if repo_match:
            return StudyRepo(owner=repo_match.group(1), repo=repo_match.group(2))
        return _first_repo_study(repos)

    if lower.startswith("share_technique") or "share" in lower:
        technique = re.sub(r"^share_technique:?\s*", "", text, flags=re.IGNORECASE).strip()
        return ShareTechnique(technique=technique or "engineering insight")

    if lower.startswith("explore_topic") or "explore" in lower:
        topic = re.sub(r"^explore_topic:?\s*", "", text, flags=re.IGNORECASE).strip()
        return ExploreTopic(topic=topic or "distributed systems")

    if "contribute" in lower or _PR_WORD.search(lower):
        repo_match = _REPO_REF.search(text)
        if repo_match:
            for repo in repos:
                if repo.owner == repo_match.group(1) and repo.repo == repo_match.group(2):
                    return StudyRepo(owner=repo.owner, repo=repo.repo)
        return _first_repo_study(repos)

    if "refactor" in lower:
        repo_match = _REPO_REF.search(text)
        if repo_match:
            return Refactor(owner=repo_match.group(1), repo=repo_match.group(2), target=text)
        return None

    if "document" in lower:
        repo_match = _REPO_REF.search(text)
        if repo_match:
            return Document(owner=repo_match.group(1), repo=repo_match.group(2), target=text)
        return None

    return None


def _first_repo_study(repos: list[GitHubRepo]) -> Optional[AgentAction]:
    if not repos:
        return None
    return StudyRepo(owner=repos[0].owner, repo=repos[0].repo)


def generate_candidate_decisions(
    agent: AutonomousAgentState,
    channel: PheromoneChannel,
    repos: list[GitHubRepo],
    issues: list[GitHubIssue],
    recent_thoughts: list[AgentThought],
) -> list[AgentDecision]:
    """Build, budget-filter, score and sort the candidate pool for one agent."""

    remaining = agent.budget_remaining
    candidates: list[AgentDecision] = []
    seen: set[AgentAction] = set()

    for action in _candidate_actions(agent, channel, repos, issues, recent_thoughts):
        if action.kind in EXCLUDED_KINDS or action in seen:
            continue
        cost = estimate_cost(action)
        if cost.estimated_tokens > remaining:
            continue
        seen.add(action)
        candidates.append(AgentDecision(agent_id=agent.id, action=action, cost=cost))

    for candidate in candidates:
        candidate.priority = score_decision(candidate, agent, channel)
    candidates.sort(key=lambda d: d.priority, reverse=True)
    return candidates


def _candidate_actions(
    agent: AutonomousAgentState,
    channel: PheromoneChannel,
    repos: list[GitHubRepo],
    issues: list[GitHubIssue],
    recent_thoughts: list[AgentThought],
) -> Iterable[AgentAction]:
    for thought in recent_thoughts[-THOUGHT_WINDOW:]:
        for suggestion in thought.suggested_actions:
            action = parse_suggested_action(suggestion, repos, issues)
            if action is not None:
                yield action

    for repo in repos:
        if repo.full_name in agent.repos_studied:
            continue
        yield StudyRepo(owner=repo.owner, repo=repo.repo)

    if len(channel.pheromones) > SHARE_MIN_PHEROMONES and agent.personality.sociability > SHARE_MIN_SOCIABILITY:
        yield ShareTechnique(technique=f"Cross-domain synthesis from {agent.specialization}")

    yield ExploreTopic(topic=agent.specialization)


def score_decision(
    decision: AgentDecision,
    agent: AutonomousAgentState,
    channel: PheromoneChannel,
) -> float:
    """Deterministic weighted sum of six signals; no randomness here."""

    kind = decision.action.kind
    remaining = agent.budget_remaining
    budget_ratio = remaining / agent.token_budget if agent.token_budget > 0 else 0.0

    base_priority = ACTION_PRIORITIES[kind] * SCORE_WEIGHTS["base_priority"]

    if remaining > 0:
        cost_efficiency = max(0.0, 1.0 - decision.cost.estimated_tokens / remaining)
    else:
        cost_efficiency = 0.0
    cost_efficiency *= SCORE_WEIGHTS["cost_efficiency"]

    completed = [d for d in agent.decisions if d.status == DecisionStatus.completed]
    recent_kinds = {d.action.kind for d in completed[-STALENESS_WINDOW:]}
    staleness = 0.0 if kind in recent_kinds else SCORE_WEIGHTS["staleness"]

    risk_multiplier = RISK_MULTIPLIERS[decision.cost.risk_level]
    risk_penalty = -(risk_multiplier * (1.0 - budget_ratio)) * SCORE_WEIGHTS["risk_penalty"]

    swarm_alignment = 0.0
    if channel.phase_transition_occurred and kind != ActionKind.explore_topic:
        swarm_alignment = SCORE_WEIGHTS["swarm_alignment"]

    trait = PERSONALITY_TRAITS[kind]
    personal_fit = getattr(agent.personality, trait) * SCORE_WEIGHTS["personal_fit"] if trait else 0.0

    return base_priority + cost_efficiency + staleness + risk_penalty + swarm_alignment + personal_fit


def select_decision(
    candidates: list[AgentDecision],
    temperature: float = DEFAULT_TEMPERATURE,
    rng: Optional[random.Random] = None,
) -> Optional[AgentDecision]:
    if not candidates:
        return None
    if temperature <= 0:
        best = candidates[0]
        for candidate in candidates[1:]:
            if candidate.priority > best.priority:
                best = candidate
        return best

    rng = rng or random.Random()
    max_priority = max(c.priority for c in candidates)
    weights = [math.exp((c.priority - max_priority) / temperature) for c in candidates]
    roll = rng.random() * sum(weights)
    for candidate, weight in zip(candidates, weights):
        roll -= weight
        if roll <= 0:
            return candidate
    return candidates[-1]


def should_switch(
    agent: AutonomousAgentState,
    last_result: Optional[DecisionResult],
    rng: Optional[random.Random] = None,
) -> bool:
    """Decide whether the in-flight decision should be abandoned."""

    if agent.current_decision is None:
        return True
    if agent.tokens_used >= agent.token_budget:
        return True
    if last_result is None:
        return False
    rng = rng or random.Random()
    if last_result.success:
        return rng.random() < SWITCH_ON_SUCCESS
    return rng.random() < SWITCH_ON_FAILURE
