"""Swarm metrics and collective memory synthesis."""

import pytest

from swarm_mind.agents.channel import PheromoneChannel
from swarm_mind.agents.types import AgentState, Pheromone, Position, Velocity
from swarm_mind.analysis import compute_metrics, synthesize_collective_memory


def _state(name: str, energy: float, synchronized: bool = False, discoveries: int = 0) -> AgentState:
    return AgentState(
        name=name,
        position=Position(x=0, y=0),
        velocity=Velocity(),
        exploration_target="d",
        energy=energy,
        synchronized=synchronized,
        discoveries=discoveries,
    )


def _emit(channel: PheromoneChannel, agent_id: str, domain: str, content: str, strength: float = 0.6) -> Pheromone:
    p = Pheromone(agent_id=agent_id, content=content, domain=domain, confidence=0.6, strength=strength)
    channel.emit(p)
    return p


def test_compute_metrics_aggregates_population_and_channel():
    channel = PheromoneChannel()
    _emit(channel, "a", "compilers", "x")
    _emit(channel, "b", "compilers", "y")
    _emit(channel, "b", "databases", "z")
    channel.refresh_density()
    agents = [_state("A", 0.4, discoveries=2), _state("B", 1.0, synchronized=True, discoveries=1)]

    metrics = compute_metrics(agents, channel, [])

    assert metrics.total_pheromones == 3
    assert metrics.total_discoveries == 3
    assert metrics.synchronized_count == 1
    assert metrics.total_syncs == 1
    assert metrics.avg_energy == pytest.approx(0.7)
    assert metrics.unique_domains_explored == 2
    assert metrics.density == channel.density
    assert metrics.collective_memory_count == 0


def test_compute_metrics_with_no_agents():
    metrics = compute_metrics([], PheromoneChannel(), [])
    assert metrics.avg_energy == 0.0
    assert metrics.total_pheromones == 0


def test_no_memory_before_phase_transition():
    channel = PheromoneChannel()
    _emit(channel, "a", "compilers", "x")
    _emit(channel, "b", "compilers", "y")
    assert synthesize_collective_memory(channel, []) == []


def test_memory_requires_two_distinct_contributors():
    channel = PheromoneChannel(phase_transition_occurred=True)
    weak = _emit(channel, "a", "compilers", "weak note", strength=0.2)
    _emit(channel, "b", "compilers", "strong note", strength=0.9)
    _emit(channel, "a", "compilers", "middle note", strength=0.5)
    _emit(channel, "a", "kernels", "solo", strength=0.9)
    _emit(channel, "a", "kernels", "solo again", strength=0.9)

    memories = synthesize_collective_memory(channel, [])

    assert [m.topic for m in memories] == ["compilers"]
    memory = memories[0]
    assert memory.contributors == ["a", "b"]
    assert memory.synthesis == "strong note | middle note | weak note"
    assert weak.id in memory.pheromone_ids
    assert memory.confidence == pytest.approx(0.6)
    assert len(memory.attestation) == 64


def test_existing_topics_are_not_synthesized_twice():
    channel = PheromoneChannel(phase_transition_occurred=True)
    _emit(channel, "a", "compilers", "x")
    _emit(channel, "b", "compilers", "y")

    first = synthesize_collective_memory(channel, [])
    _emit(channel, "c", "compilers", "z")

    assert len(first) == 1
    assert synthesize_collective_memory(channel, first) == []
