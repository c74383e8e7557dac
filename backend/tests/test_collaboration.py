"""Collaboration detection over executing decisions and synced agents."""

from swarm_mind.agents.channel import PheromoneChannel
from swarm_mind.agents.collaboration import detect_collaborative_opportunity
from swarm_mind.agents.decider import estimate_cost
from swarm_mind.agents.types import (
    AgentDecision,
    AutonomousAgentState,
    DecisionStatus,
    Document,
    Position,
    StudyRepo,
    Velocity,
)


def _agent(name: str, specialization: str = "Explorer", synchronized: bool = False) -> AutonomousAgentState:
    return AutonomousAgentState(
        name=name,
        position=Position(x=0, y=0),
        velocity=Velocity(),
        exploration_target="consensus mechanisms",
        specialization=specialization,
        synchronized=synchronized,
    )


def _working_on(agent: AutonomousAgentState, action, status: DecisionStatus = DecisionStatus.executing) -> None:
    agent.current_decision = AgentDecision(
        agent_id=agent.id, action=action, cost=estimate_cost(action), status=status
    )


def test_repo_overlap_proposes_joint_project():
    a, b, c = _agent("A"), _agent("B"), _agent("C")
    _working_on(a, StudyRepo(owner="acme", repo="widgets"))
    _working_on(b, Document(owner="acme", repo="widgets", target="api"))
    _working_on(c, StudyRepo(owner="octo", repo="tools"))

    project = detect_collaborative_opportunity([a, b, c], PheromoneChannel())

    assert project is not None
    assert project.title == "Collaborative work on acme/widgets"
    assert set(project.participants) == {a.id, b.id}
    assert project.repos == ["acme/widgets"]
    assert project.status.value == "proposed"


def test_pending_decisions_do_not_count_toward_overlap():
    a, b = _agent("A"), _agent("B")
    _working_on(a, StudyRepo(owner="acme", repo="widgets"))
    _working_on(b, StudyRepo(owner="acme", repo="widgets"), status=DecisionStatus.pending)

    assert detect_collaborative_opportunity([a, b], PheromoneChannel()) is None


def test_synced_agents_with_distinct_specializations_team_up():
    agents = [
        _agent("A", "Explorer", synchronized=True),
        _agent("B", "Synthesizer", synchronized=True),
        _agent("C", "Explorer", synchronized=True),
    ]

    project = detect_collaborative_opportunity(agents, PheromoneChannel())

    assert project is not None
    assert project.title == "Cross-domain collaboration: Explorer + Synthesizer"
    assert len(project.participants) == 3
    assert project.repos == []


def test_synced_agents_sharing_one_specialization_yield_nothing():
    agents = [_agent(name, "Builder", synchronized=True) for name in ("A", "B", "C")]
    assert detect_collaborative_opportunity(agents, PheromoneChannel()) is None


def test_too_few_synced_agents_yield_nothing():
    agents = [_agent("A", "Explorer", synchronized=True), _agent("B", "Builder", synchronized=True)]
    assert detect_collaborative_opportunity(agents, PheromoneChannel()) is None
