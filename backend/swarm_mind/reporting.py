"""Swarm run report builder.

Summarizes what each agent studied and concluded, the strongest insights in
the thought stream, which repositories were studied and by whom, and the
collective memories formed so far. Pure functions over engine state; the API
layer decides when to call them.
"""

from typing import Any, Iterable

from .agents.types import AgentThought, AutonomousAgentState, CollectiveMemory, DecisionStatus, GitHubRepo
from .serializers import serialize_memory, serialize_thought
from .utils import now_ms

CONCLUSION_MIN_CONFIDENCE = 0.5
INSIGHT_MIN_CONFIDENCE = 0.6
TOP_CONCLUSIONS = 5
TOP_INSIGHTS = 20


def build_swarm_report(
    agents: list[AutonomousAgentState],
    thoughts: Iterable[AgentThought],
    collective_memories: list[CollectiveMemory],
    *,
    step: int,
    phase_transition: bool,
) -> dict[str, Any]:
    """Build the JSON report for the current run."""

    return {
        "generated_at": now_ms(),
        "swarm_step": step,
        "phase_transition": phase_transition,
        "agent_summaries": [_agent_summary(agent) for agent in agents],
        "top_insights": _top_insights(agents, thoughts),
        "repos_studied": repos_studied(agents),
        "collective_memories": [serialize_memory(m) for m in collective_memories],
    }


def repos_studied(agents: list[AutonomousAgentState]) -> list[dict[str, Any]]:
    """Studied repositories in first-seen order, with the agents that studied each."""

    by_repo: dict[str, dict[str, Any]] = {}
    for agent in agents:
        for full_name in agent.repos_studied:
            owner, _, repo = full_name.partition("/")
            entry = by_repo.setdefault(full_name, {"owner": owner, "repo": repo, "studied_by": []})
            if agent.name not in entry["studied_by"]:
                entry["studied_by"].append(agent.name)
    return list(by_repo.values())


def known_repos(agents: list[AutonomousAgentState], discovered: Iterable[GitHubRepo]) -> list[dict[str, Any]]:
    """Every repository the swarm has discovered or studied, deduplicated by full name."""

    studied = {r["owner"] + "/" + r["repo"]: r["studied_by"] for r in repos_studied(agents)}
    listed: dict[str, dict[str, Any]] = {}
    for repo in discovered:
        if repo.full_name in listed:
            continue
        listed[repo.full_name] = {
            "owner": repo.owner,
            "repo": repo.repo,
            "description": repo.description,
            "language": repo.language,
            "stars": repo.stars,
            "studied_by": studied.get(repo.full_name, []),
        }
    for full_name, studied_by in studied.items():
        if full_name not in listed:
            owner, _, repo = full_name.partition("/")
            listed[full_name] = {
                "owner": owner,
                "repo": repo,
                "description": "",
                "language": "",
                "stars": 0,
                "studied_by": studied_by,
            }
    return list(listed.values())


def _agent_summary(agent: AutonomousAgentState) -> dict[str, Any]:
    confident = [t for t in agent.thoughts if t.confidence > CONCLUSION_MIN_CONFIDENCE]
    confident.sort(key=lambda t: t.confidence, reverse=True)
    return {
        "name": agent.name,
        "specialization": agent.specialization,
        "repos_studied": list(agent.repos_studied),
        "thought_count": len(agent.thoughts),
        "decisions_completed": sum(1 for d in agent.decisions if d.status == DecisionStatus.completed),
        "tokens_used": agent.tokens_used,
        "top_conclusions": [
            {"conclusion": t.conclusion, "confidence": t.confidence, "trigger": t.trigger}
            for t in confident[:TOP_CONCLUSIONS]
        ],
        "latest_thought": serialize_thought(agent.thoughts[-1]) if agent.thoughts else None,
    }


def _top_insights(agents: list[AutonomousAgentState], thoughts: Iterable[AgentThought]) -> list[dict[str, Any]]:
    names = {agent.id: (agent.name, agent.specialization) for agent in agents}
    strong = [t for t in thoughts if t.confidence > INSIGHT_MIN_CONFIDENCE]
    strong.sort(key=lambda t: t.confidence, reverse=True)
    insights = []
    for thought in strong[:TOP_INSIGHTS]:
        name, specialization = names.get(thought.agent_id, ("Unknown", "Generalist"))
        insights.append(
            {
                "agent_name": name,
                "specialization": specialization,
                "trigger": thought.trigger,
                "conclusion": thought.conclusion,
                "reasoning": thought.reasoning,
                "suggested_actions": list(thought.suggested_actions),
                "confidence": thought.confidence,
                "timestamp": thought.timestamp,
            }
        )
    return insights
