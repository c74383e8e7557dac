"""Swarm-level metrics and collective memory synthesis.

Collective memories merge pheromones that several agents emitted on the
same domain; they are only formed once the channel has gone through its
phase transition.
"""

from collections import defaultdict
from statistics import mean

from .agents.channel import PheromoneChannel
from .agents.types import AgentState, CollectiveMemory, Pheromone, SwarmMetrics
from .utils import attestation_hash

MIN_CONTRIBUTORS = 2
SYNTHESIS_FRAGMENTS = 3


def compute_metrics(
    agents: list[AgentState],
    channel: PheromoneChannel,
    collective_memories: list[CollectiveMemory],
) -> SwarmMetrics:
    pheromones = channel.snapshot()
    return SwarmMetrics(
        total_pheromones=len(pheromones),
        total_discoveries=sum(a.discoveries for a in agents),
        total_syncs=sum(1 for a in agents if a.synchronized),
        avg_energy=round(mean(a.energy for a in agents), 4) if agents else 0.0,
        density=channel.density,
        synchronized_count=sum(1 for a in agents if a.synchronized),
        collective_memory_count=len(collective_memories),
        unique_domains_explored=len({p.domain for p in pheromones}),
    )


def synthesize_collective_memory(
    channel: PheromoneChannel,
    existing: list[CollectiveMemory],
) -> list[CollectiveMemory]:
    """Return new memories for domains with enough distinct contributors.

    Domains that already have a memory are skipped.
    """

    if not channel.phase_transition_occurred:
        return []

    by_domain: dict[str, list[Pheromone]] = defaultdict(list)
    for pheromone in channel.snapshot():
        by_domain[pheromone.domain].append(pheromone)

    covered = {m.topic for m in existing}
    created: list[CollectiveMemory] = []
    for domain, pheromones in by_domain.items():
        if domain in covered:
            continue
        contributors = list(dict.fromkeys(p.agent_id for p in pheromones))
        if len(contributors) < MIN_CONTRIBUTORS:
            continue
        strongest = sorted(pheromones, key=lambda p: p.strength, reverse=True)[:SYNTHESIS_FRAGMENTS]
        synthesis = " | ".join(p.content for p in strongest)
        created.append(
            CollectiveMemory(
                topic=domain,
                synthesis=synthesis,
                contributors=contributors,
                pheromone_ids=[p.id for p in pheromones],
                confidence=round(mean(p.confidence for p in pheromones), 4),
                attestation=attestation_hash(f"{domain}{synthesis}{','.join(contributors)}"),
            )
        )
    return created
