"""Agent tick behavior: movement, absorption, sync, exploration and engineering."""

import asyncio
import random

import pytest

from swarm_mind.agents.adapters.mock_adapter import MockReasoningAdapter
from swarm_mind.agents.agent import (
    BOUNDS_X,
    BOUNDS_Y,
    DOMAINS,
    FALLBACK_NOTES,
    MAX_EXECUTION_ATTEMPTS,
    PERSONALITY_PRESETS,
    SwarmAgent,
    generate_personality,
)
from swarm_mind.agents.collaboration import detect_collaborative_opportunity
from swarm_mind.agents.channel import PheromoneChannel
from swarm_mind.agents.decider import estimate_cost
from swarm_mind.agents.thinker import Thinker
from swarm_mind.agents.types import (
    AgentDecision,
    Artifact,
    DecisionResult,
    DecisionStatus,
    ExploreTopic,
    Pheromone,
    StudyRepo,
)


class FakeExecutor:
    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    async def execute(self, agent, decision):
        self.calls += 1
        outcome = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class SlowExecutor:
    async def execute(self, agent, decision):
        await asyncio.sleep(1)
        return DecisionResult(success=True, summary="late")


class ExplodingThinker(Thinker):
    async def form_thought(self, agent, trigger, observation, context):
        raise RuntimeError("reasoning offline")

    async def synthesize_knowledge(self, agent, pheromones):
        raise RuntimeError("reasoning offline")


def _success() -> DecisionResult:
    return DecisionResult(
        success=True,
        summary="Explored caches",
        artifacts=[Artifact(kind="analysis", content="caches everywhere")],
        tokens_used=300,
    )


def _make_agent(offline_github, *, rng=None, executor=None, thinker=None, index=0) -> SwarmAgent:
    thinker = thinker or Thinker(MockReasoningAdapter())
    return SwarmAgent(
        index,
        rng=rng or random.Random(7),
        thinker=thinker,
        github=offline_github,
        executor=executor,
        token_budget=50000,
        engineering_enabled=True,
    )


def _in_flight(agent: SwarmAgent, attempts: int = 1, result=None) -> AgentDecision:
    action = ExploreTopic(topic="caches")
    decision = AgentDecision(
        agent_id=agent.state.id,
        action=action,
        cost=estimate_cost(action),
        priority=0.5,
        status=DecisionStatus.executing,
        attempts=attempts,
        result=result,
    )
    agent.state.current_decision = decision
    return decision


def _foreign(strength: float) -> Pheromone:
    return Pheromone(agent_id="other", content="insight about caches", domain="database optimization patterns", confidence=0.6, strength=strength)


def test_generate_personality_applies_bounded_jitter():
    rng = random.Random(3)
    for index in range(6):
        name, personality = generate_personality(index, rng)
        preset_name, preset = PERSONALITY_PRESETS[index % 3]
        assert name == preset_name
        for trait in ("curiosity", "diligence", "boldness", "sociability"):
            assert abs(getattr(personality, trait) - getattr(preset, trait)) <= 0.05 + 1e-9


def test_agent_naming_and_domain_assignment(offline_github):
    first = _make_agent(offline_github, index=0)
    fourth = _make_agent(offline_github, index=3)

    assert first.state.name == "Neuron-A"
    assert fourth.state.name == "Neuron-3"
    assert first.state.exploration_target == DOMAINS[0]
    assert fourth.state.exploration_target == DOMAINS[3]
    assert fourth.state.specialization == "Explorer"
    assert 0.3 <= first.state.energy <= 0.6


def test_absorb_is_idempotent_and_reinforces(offline_github):
    agent = _make_agent(offline_github)
    channel = PheromoneChannel()
    p = _foreign(0.5)
    channel.emit(p)
    energy = agent.state.energy

    assert agent.absorb(p, channel) is True
    assert agent.absorb(p, channel) is False
    assert p.strength == pytest.approx(0.6)
    assert agent.state.energy == pytest.approx(energy + 0.05)
    assert agent.state.absorbed == {p.id}


def test_absorb_pheromones_skips_own_and_weak_signals(offline_github, fixed_random):
    agent = _make_agent(offline_github, rng=fixed_random(0.0))
    channel = PheromoneChannel()
    own = Pheromone(agent_id=agent.state.id, content="mine", domain="d", confidence=0.5, strength=0.9)
    weak = _foreign(0.2)
    strong = _foreign(0.8)
    for p in (own, weak, strong):
        channel.emit(p)

    absorbed = agent.absorb_pheromones(channel)

    assert absorbed == [strong]
    assert own.id not in agent.state.absorbed
    assert weak.id not in agent.state.absorbed


def test_move_stays_inside_bounds(offline_github):
    agent = _make_agent(offline_github, rng=random.Random(11))
    channel = PheromoneChannel()
    agent.state.velocity.dx = 5000
    agent.state.velocity.dy = -5000
    for _ in range(25):
        agent.move(channel)
        assert BOUNDS_X[0] <= agent.state.position.x <= BOUNDS_X[1]
        assert BOUNDS_Y[0] <= agent.state.position.y <= BOUNDS_Y[1]


def test_synchronized_move_is_deterministic(offline_github):
    channel = PheromoneChannel()
    positions = []
    for seed in (1, 2):
        agent = _make_agent(offline_github, rng=random.Random(seed))
        agent.state.synchronized = True
        agent.state.position.x, agent.state.position.y = 700.0, 300.0
        agent.state.velocity.dx = agent.state.velocity.dy = 0.0
        agent.move(channel)
        positions.append((agent.state.position.x, agent.state.position.y))
    assert positions[0] == pytest.approx(positions[1])
    assert positions[0][0] < 700.0


def test_check_sync_requires_density_absorption_and_energy(offline_github):
    agent = _make_agent(offline_github)
    channel = PheromoneChannel(critical_threshold=0.6)
    channel.density = 0.8
    agent.state.absorbed = {"p1", "p2"}
    agent.state.energy = 0.9
    assert agent.check_sync(channel) is False

    agent.state.absorbed.add("p3")
    agent.state.energy = 0.5
    assert agent.check_sync(channel) is False

    agent.state.energy = 0.55
    assert agent.check_sync(channel) is True
    assert agent.state.synchronized is True
    assert agent.state.energy == 1.0
    assert agent.check_sync(channel) is False


def test_explore_falls_back_to_curated_note_when_offline(offline_github, fixed_random):
    agent = _make_agent(offline_github, rng=fixed_random(0.1))

    pheromone = asyncio.run(agent._explore([]))

    assert pheromone is not None
    assert pheromone.confidence == pytest.approx(0.34)
    assert pheromone.strength == pytest.approx(0.602)
    assert pheromone.content in FALLBACK_NOTES[agent.state.exploration_target]
    assert agent.state.discoveries == 1


def test_explore_uses_discovered_repository(fixed_random):
    import httpx

    from swarm_mind.agents.github import GitHubClient

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "items": [
                    {"full_name": "acme/fastq", "description": "fast queues", "language": "Rust", "stargazers_count": 420}
                ]
            },
        )

    github = GitHubClient(base_url="https://api.github.test", token="", transport=httpx.MockTransport(handler))
    agent = _make_agent(github, rng=fixed_random(0.1))

    pheromone = asyncio.run(agent._explore([]))

    assert pheromone.content == "github:acme/fastq (420 stars, Rust) - fast queues"
    assert [r.full_name for r in agent.discovered_repos] == ["acme/fastq"]


def test_successful_engineering_step_emits_engineering_pheromone(offline_github, fixed_random):
    executor = FakeExecutor(_success())
    agent = _make_agent(offline_github, rng=fixed_random(0.1), executor=executor)

    pheromone = asyncio.run(agent._engineering_step(PheromoneChannel(), []))

    assert executor.calls == 1
    assert pheromone is not None
    decision = agent.state.decisions[-1]
    assert decision.status == DecisionStatus.completed
    assert pheromone.strength == pytest.approx(0.6 + decision.priority * 0.3)
    assert pheromone.pheromone_type == "knowledge"
    assert agent.state.current_decision is None
    assert agent.state.tokens_used == 120 + 300


def test_failed_execution_stays_in_flight_then_continues(offline_github, fixed_random):
    failure = DecisionResult(success=False, summary="nothing found")
    executor = FakeExecutor(failure, _success())
    agent = _make_agent(offline_github, rng=fixed_random(0.1), executor=executor)

    assert asyncio.run(agent._engineering_step(PheromoneChannel(), [])) is None
    decision = agent.state.current_decision
    assert decision is not None
    assert decision.status == DecisionStatus.executing
    assert decision.result is failure

    agent.rng = fixed_random(0.9)
    pheromone = asyncio.run(agent.continue_execution())

    assert pheromone is not None
    assert decision.status == DecisionStatus.completed
    assert decision.attempts == 2


def test_low_roll_after_failure_abandons_decision(offline_github, fixed_random):
    agent = _make_agent(offline_github, rng=fixed_random(0.1), executor=FakeExecutor(_success()))
    decision = _in_flight(agent, result=DecisionResult(success=False, summary="bad"))

    assert asyncio.run(agent.continue_execution()) is None
    assert decision.status == DecisionStatus.failed
    assert agent.state.current_decision is None
    assert agent.state.current_action == "switching tasks"


def test_executor_exception_leaves_decision_executing(offline_github, fixed_random):
    executor = FakeExecutor(RuntimeError("sandbox crashed"))
    agent = _make_agent(offline_github, rng=fixed_random(0.9), executor=executor)
    decision = _in_flight(agent)

    assert asyncio.run(agent.continue_execution()) is None
    assert decision.status == DecisionStatus.executing
    assert decision.result is None
    assert agent.state.current_decision is decision


def test_execution_timeout_leaves_decision_executing(offline_github, fixed_random):
    agent = _make_agent(offline_github, rng=fixed_random(0.9), executor=SlowExecutor())
    agent.execution_timeout_s = 0.01
    decision = _in_flight(agent)

    assert asyncio.run(agent.continue_execution()) is None
    assert decision.status == DecisionStatus.executing
    assert decision.result is None
    assert decision.attempts == 2


def test_exhausted_attempts_abandon_decision(offline_github, fixed_random):
    executor = FakeExecutor(_success())
    agent = _make_agent(offline_github, rng=fixed_random(0.9), executor=executor)
    decision = _in_flight(agent, attempts=MAX_EXECUTION_ATTEMPTS)

    assert asyncio.run(agent.continue_execution()) is None
    assert executor.calls == 0
    assert decision.status == DecisionStatus.failed
    assert agent.state.decisions[-1] is decision


def test_reasoning_error_puts_agent_in_recovery(offline_github, fixed_random):
    agent = _make_agent(
        offline_github,
        rng=fixed_random(0.1),
        thinker=ExplodingThinker(MockReasoningAdapter()),
        executor=FakeExecutor(_success()),
    )

    assert asyncio.run(agent._engineering_step(PheromoneChannel(), [])) is None
    assert agent.state.current_action == "recovering from error"
    assert agent.state.current_decision is None


def test_step_without_engineering_only_explores(offline_github):
    agent = _make_agent(offline_github, rng=random.Random(5))
    agent.engineering_enabled = False
    channel = PheromoneChannel()

    for _ in range(10):
        asyncio.run(agent.step(channel))

    assert agent.state.step_count == 10
    assert agent.state.decisions == []
    assert agent.state.current_decision is None


def _spent_agent_on_repo(offline_github, rng, index: int, executor: FakeExecutor) -> SwarmAgent:
    agent = _make_agent(offline_github, rng=rng, executor=executor, index=index)
    agent.state.tokens_used = agent.state.token_budget
    action = StudyRepo(owner="octo", repo="widget")
    agent.state.current_decision = AgentDecision(
        agent_id=agent.state.id,
        action=action,
        cost=estimate_cost(action),
        status=DecisionStatus.executing,
        attempts=1,
        result=DecisionResult(success=False, summary="could not load"),
    )
    return agent


def test_step_abandons_in_flight_decision_once_budget_is_spent(offline_github, fixed_random):
    executor = FakeExecutor(_success())
    agent = _spent_agent_on_repo(offline_github, fixed_random(0.99), 0, executor)
    decision = agent.state.current_decision

    asyncio.run(agent.step(PheromoneChannel()))

    assert executor.calls == 0
    assert decision.status == DecisionStatus.failed
    assert agent.state.current_decision is None
    assert agent.state.decisions[-1] is decision
    assert agent.state.tokens_used == agent.state.token_budget


def test_spent_agents_stop_counting_toward_repo_overlap(offline_github, fixed_random):
    executor = FakeExecutor(_success())
    agents = [_spent_agent_on_repo(offline_github, fixed_random(0.99), i, executor) for i in range(2)]
    channel = PheromoneChannel()
    assert detect_collaborative_opportunity([a.state for a in agents], channel) is not None

    for agent in agents:
        asyncio.run(agent.step(channel))

    assert [a.state.current_decision for a in agents] == [None, None]
    assert detect_collaborative_opportunity([a.state for a in agents], channel) is None


def test_engineering_step_skips_reasoning_without_budget(offline_github, fixed_random):
    executor = FakeExecutor(_success())
    agent = _make_agent(offline_github, rng=fixed_random(0.1), executor=executor)
    agent.state.tokens_used = agent.state.token_budget

    assert asyncio.run(agent._engineering_step(PheromoneChannel(), [])) is None
    assert agent.state.thoughts == []
    assert agent.state.tokens_used == agent.state.token_budget
    assert agent.state.current_action == "budget exhausted"
    assert executor.calls == 0
