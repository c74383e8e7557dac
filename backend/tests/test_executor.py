"""Sandboxed execution of each action kind."""

import asyncio

import httpx

from swarm_mind.agents.adapters.base import ReviewResult
from swarm_mind.agents.adapters.mock_adapter import MOCK_TOKENS_PER_CALL, MockReasoningAdapter
from swarm_mind.agents.adapters.rule_based import RuleBasedReasoningAdapter
from swarm_mind.agents.decider import estimate_cost
from swarm_mind.agents.executor import SandboxExecutor
from swarm_mind.agents.github import GitHubClient
from swarm_mind.agents.thinker import Thinker
from swarm_mind.agents.types import (
    AgentDecision,
    AutonomousAgentState,
    ContributePR,
    ExploreTopic,
    FixIssue,
    Position,
    Refactor,
    ShareTechnique,
    StudyRepo,
    Velocity,
    WriteCode,
)


class PickyAdapter(MockReasoningAdapter):
    def __init__(self) -> None:
        self.previous_attempts: list = []

    async def generate_patch(self, ctx):
        self.previous_attempts.append(ctx.previous_attempt)
        return await super().generate_patch(ctx)

    async def review(self, ctx, changes):
        return ReviewResult(passed=False, issues=["missing tests"], score=4.0, tokens_used=10)


def _agent() -> AutonomousAgentState:
    return AutonomousAgentState(
        name="Neuron-C",
        position=Position(x=0, y=0),
        velocity=Velocity(),
        exploration_target="operating system internals",
        specialization="Builder",
    )


def _decision(agent: AutonomousAgentState, action) -> AgentDecision:
    return AgentDecision(agent_id=agent.id, action=action, cost=estimate_cost(action))


def _repo_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/repos/acme/widgets":
        return httpx.Response(200, json={"full_name": "acme/widgets", "description": "Widgets", "language": "Go"})
    if path == "/repos/acme/widgets/git/trees/HEAD":
        return httpx.Response(200, json={"tree": [{"path": "cmd/main.go"}]})
    if path == "/repos/acme/widgets/issues":
        return httpx.Response(200, json=[])
    if path == "/repos/acme/widgets/contents/cmd/main.go":
        return httpx.Response(200, json={"content": "cGFja2FnZSBtYWlu"})
    return httpx.Response(404)


def _github(handler=_repo_handler) -> GitHubClient:
    return GitHubClient(base_url="https://api.github.test", token="", transport=httpx.MockTransport(handler))


def test_study_repo_records_analysis_and_studied_repo():
    recorded = []
    executor = SandboxExecutor(Thinker(MockReasoningAdapter()), _github(), on_thought=recorded.append)
    agent = _agent()

    result = asyncio.run(executor.execute(agent, _decision(agent, StudyRepo(owner="acme", repo="widgets"))))

    assert result.success is True
    assert result.tokens_used == MOCK_TOKENS_PER_CALL
    assert result.artifacts[0].kind == "analysis"
    assert result.artifacts[0].url == "https://github.com/acme/widgets"
    assert agent.repos_studied == ["acme/widgets"]
    assert len(recorded) == 1
    assert agent.thoughts == recorded
    assert recorded[0].trigger == "repo_analysis"


def test_study_repo_fails_when_repository_cannot_load(offline_github):
    executor = SandboxExecutor(Thinker(MockReasoningAdapter()), offline_github)
    agent = _agent()

    result = asyncio.run(executor.execute(agent, _decision(agent, StudyRepo(owner="acme", repo="gone"))))

    assert result.success is False
    assert agent.repos_studied == []


def test_refactor_reads_context_files_and_passes_review():
    executor = SandboxExecutor(Thinker(MockReasoningAdapter()), _github())
    agent = _agent()
    action = Refactor(owner="acme", repo="widgets", target="main loop")

    result = asyncio.run(executor.execute(agent, _decision(agent, action)))

    assert result.success is True
    assert [a.kind for a in result.artifacts] == ["code_change"]
    assert result.artifacts[0].file_path == "cmd/main.go"
    assert result.artifacts[0].content.startswith("package main")
    assert result.tokens_used == 2 * MOCK_TOKENS_PER_CALL


def test_write_code_without_changes_fails(offline_github):
    executor = SandboxExecutor(Thinker(RuleBasedReasoningAdapter()), offline_github)
    agent = _agent()

    result = asyncio.run(executor.execute(agent, _decision(agent, WriteCode(description="add retry helper"))))

    assert result.success is False
    assert result.artifacts == []


def test_rejected_review_is_retried_with_feedback_then_fails(offline_github):
    adapter = PickyAdapter()
    executor = SandboxExecutor(Thinker(adapter), offline_github)
    agent = _agent()

    result = asyncio.run(executor.execute(agent, _decision(agent, WriteCode(description="add retry helper"))))

    assert result.success is False
    assert result.summary.startswith("Review rejected")
    assert adapter.previous_attempts == [None, "missing tests"]


def test_share_technique_produces_technique_artifact(offline_github):
    executor = SandboxExecutor(Thinker(MockReasoningAdapter()), offline_github)
    agent = _agent()

    result = asyncio.run(executor.execute(agent, _decision(agent, ShareTechnique(technique="ring buffers"))))

    assert result.success is True
    assert result.artifacts[0].kind == "technique"


def test_explore_topic_succeeds_offline_with_a_conclusion(offline_github):
    executor = SandboxExecutor(Thinker(MockReasoningAdapter()), offline_github)
    agent = _agent()

    result = asyncio.run(executor.execute(agent, _decision(agent, ExploreTopic(topic="io_uring"))))

    assert result.success is True
    assert result.summary.startswith("Explored io_uring")


def test_fix_and_contribute_are_out_of_scope(offline_github):
    executor = SandboxExecutor(Thinker(MockReasoningAdapter()), offline_github)
    agent = _agent()

    for action in (FixIssue(owner="acme", repo="widgets", issue_number=3), ContributePR(owner="acme", repo="widgets", description="x")):
        result = asyncio.run(executor.execute(agent, _decision(agent, action)))
        assert result.success is False
        assert "out of scope" in result.summary
        assert result.tokens_used == 0
    assert agent.thoughts == []
