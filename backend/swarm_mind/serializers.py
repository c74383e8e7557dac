"""JSON-ready views of engine state for the API and websocket snapshots."""

from dataclasses import asdict
from typing import Any

from .agents.types import (
    AgentDecision,
    AgentThought,
    AutonomousAgentState,
    CollaborativeProject,
    CollectiveMemory,
    Pheromone,
    action_payload,
)


def serialize_pheromone(pheromone: Pheromone) -> dict[str, Any]:
    return {
        "id": pheromone.id,
        "agent_id": pheromone.agent_id,
        "content": pheromone.content,
        "domain": pheromone.domain,
        "confidence": pheromone.confidence,
        "strength": pheromone.strength,
        "connections": sorted(pheromone.connections),
        "timestamp": pheromone.timestamp,
        "attestation": pheromone.attestation,
        "pheromone_type": pheromone.pheromone_type,
        "artifacts": [asdict(a) for a in pheromone.artifacts],
        "github_refs": list(pheromone.github_refs),
        "code_snippets": list(pheromone.code_snippets),
    }


def serialize_thought(thought: AgentThought) -> dict[str, Any]:
    return asdict(thought)


def serialize_decision(decision: AgentDecision) -> dict[str, Any]:
    return {
        "id": decision.id,
        "agent_id": decision.agent_id,
        "action": action_payload(decision.action),
        "priority": round(decision.priority, 4),
        "cost": {
            "estimated_tokens": decision.cost.estimated_tokens,
            "estimated_time_ms": decision.cost.estimated_time_ms,
            "risk_level": decision.cost.risk_level.value,
        },
        "status": decision.status.value,
        "result": asdict(decision.result) if decision.result else None,
        "created_at": decision.created_at,
        "completed_at": decision.completed_at,
        "attempts": decision.attempts,
    }


def serialize_agent_summary(agent: AutonomousAgentState) -> dict[str, Any]:
    return {
        "id": agent.id,
        "name": agent.name,
        "position": asdict(agent.position),
        "velocity": asdict(agent.velocity),
        "energy": round(agent.energy, 4),
        "synchronized": agent.synchronized,
        "exploration_target": agent.exploration_target,
        "discoveries": agent.discoveries,
        "absorbed": len(agent.absorbed),
        "knowledge_count": len(agent.knowledge),
        "contributions_to_collective": agent.contributions_to_collective,
        "step_count": agent.step_count,
        "current_action": agent.current_action or "idle",
        "specialization": agent.specialization,
        "thought_count": len(agent.thoughts),
        "decision_count": len(agent.decisions),
        "tokens_used": agent.tokens_used,
        "token_budget": agent.token_budget,
        "latest_thought": agent.thoughts[-1].conclusion if agent.thoughts else None,
    }


def serialize_agent_detail(agent: AutonomousAgentState) -> dict[str, Any]:
    payload = serialize_agent_summary(agent)
    payload.update(
        {
            "personality": asdict(agent.personality),
            "synced_with": list(agent.synced_with),
            "repos_studied": list(agent.repos_studied),
            "budget_remaining": agent.budget_remaining,
            "current_decision": serialize_decision(agent.current_decision) if agent.current_decision else None,
            "recent_thoughts": [serialize_thought(t) for t in agent.thoughts[-10:]],
            "recent_decisions": [serialize_decision(d) for d in agent.decisions[-10:]],
        }
    )
    return payload


def serialize_project(project: CollaborativeProject) -> dict[str, Any]:
    payload = asdict(project)
    payload["status"] = project.status.value
    return payload


def serialize_memory(memory: CollectiveMemory) -> dict[str, Any]:
    return asdict(memory)
