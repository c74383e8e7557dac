"""Population-wide scan for emergent joint projects.

Stateless: callers re-run the scan periodically and decide what to do with
the proposal.
"""

import logging
from typing import Optional

from .channel import PheromoneChannel
from .types import AutonomousAgentState, CollaborativeProject, DecisionStatus

logger = logging.getLogger(__name__)

MIN_REPO_OVERLAP = 2
MIN_SYNCED_AGENTS = 3
MIN_SPECIALIZATIONS = 2


def detect_collaborative_opportunity(
    agents: list[AutonomousAgentState],
    channel: PheromoneChannel,
) -> Optional[CollaborativeProject]:
    """Propose a project for repo overlap first, then cross-domain sync."""

    repo_agents: dict[str, list[str]] = {}
    for agent in agents:
        decision = agent.current_decision
        if decision is None or decision.status != DecisionStatus.executing:
            continue
        repo_ref = decision.action.repo_ref
        if repo_ref:
            repo_agents.setdefault(repo_ref, []).append(agent.id)

    for repo_ref, agent_ids in repo_agents.items():
        if len(agent_ids) >= MIN_REPO_OVERLAP:
            project = CollaborativeProject(
                title=f"Collaborative work on {repo_ref}",
                description=(
                    f"{len(agent_ids)} agents are independently working on {repo_ref}. "
                    "Coordination could prevent conflicts."
                ),
                participants=list(agent_ids),
                repos=[repo_ref],
            )
            logger.info("collaboration proposed repo=%s participants=%s", repo_ref, len(agent_ids))
            return project

    synced = [agent for agent in agents if agent.synchronized]
    if len(synced) >= MIN_SYNCED_AGENTS:
        specializations = list(dict.fromkeys(agent.specialization for agent in synced))
        if len(specializations) >= MIN_SPECIALIZATIONS:
            project = CollaborativeProject(
                title=f"Cross-domain collaboration: {' + '.join(specializations[:2])}",
                description=(
                    f"{len(synced)} synced agents with complementary specializations could tackle "
                    "a complex cross-domain project."
                ),
                participants=[agent.id for agent in synced],
                repos=[],
            )
            logger.info(
                "collaboration proposed specializations=%s participants=%s",
                ",".join(specializations[:2]),
                len(synced),
            )
            return project

    return None
