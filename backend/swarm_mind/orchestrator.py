"""Swarm tick loop.

Owns the shared channel and the agent population, advances them in
discrete ticks, runs the periodic swarm-level scans, and broadcasts a
snapshot after every tick.
"""

import asyncio
import logging
import random
from collections import deque
from dataclasses import asdict
from typing import Any, Optional

from .agents.agent import SwarmAgent
from .agents.channel import PheromoneChannel
from .agents.collaboration import detect_collaborative_opportunity
from .agents.github import GitHubClient
from .agents.thinker import Thinker
from .agents.types import (
    AgentDecision,
    AgentThought,
    CollaborativeProject,
    CollectiveMemory,
    Pheromone,
    SwarmMetrics,
)
from .analysis import compute_metrics, synthesize_collective_memory
from .config import settings
from .persistence import PersistenceStore
from .serializers import serialize_agent_summary
from .utils import now_ms

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs the swarm as a background task and exposes its state."""

    def __init__(
        self,
        ws_manager,
        *,
        store: Optional[PersistenceStore] = None,
        agent_count: Optional[int] = None,
        seed: Optional[int] = None,
        thinker: Optional[Thinker] = None,
        github: Optional[GitHubClient] = None,
    ) -> None:
        self.ws_manager = ws_manager
        self.store = store
        self._task: Optional[asyncio.Task] = None
        self._build(agent_count=agent_count, seed=seed, thinker=thinker, github=github)

    async def reset(
        self,
        *,
        agent_count: Optional[int] = None,
        seed: Optional[int] = None,
        thinker: Optional[Thinker] = None,
        github: Optional[GitHubClient] = None,
    ) -> None:
        """Rebuild channel and population from scratch.

        A GitHub client that gets replaced is closed.
        """

        if self.running:
            raise RuntimeError("cannot reset a running swarm")
        previous = self.github
        self._build(agent_count=agent_count, seed=seed, thinker=thinker, github=github)
        if previous is not self.github:
            await previous.aclose()

    def _build(
        self,
        *,
        agent_count: Optional[int],
        seed: Optional[int],
        thinker: Optional[Thinker],
        github: Optional[GitHubClient],
    ) -> None:
        self.rng = random.Random(settings.swarm_seed if seed is None else seed)
        self.thinker = thinker or Thinker()
        self.github = github or GitHubClient()
        self.channel = PheromoneChannel(
            critical_threshold=settings.critical_threshold,
            saturation=settings.density_saturation,
        )
        count = settings.agent_count if agent_count is None else agent_count
        self.agents = [
            SwarmAgent(
                index,
                rng=random.Random(self.rng.getrandbits(64)),
                thinker=self.thinker,
                github=self.github,
                store=self.store,
            )
            for index in range(count)
        ]
        self.step = 0
        self.started_at: Optional[int] = None
        self.max_steps = settings.max_steps_default
        self.tick_interval_ms = settings.tick_interval_ms
        self.collective_memories: list[CollectiveMemory] = []
        self.collaborative_projects: list[CollaborativeProject] = []
        self.thought_stream: deque[AgentThought] = deque(maxlen=settings.stream_limit)
        self.decision_stream: deque[AgentDecision] = deque(maxlen=settings.stream_limit)
        self.metrics = SwarmMetrics()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_agent(self, agent_id: str) -> Optional[SwarmAgent]:
        for agent in self.agents:
            if agent.state.id == agent_id:
                return agent
        return None

    async def start(self, max_steps: Optional[int] = None, tick_interval_ms: Optional[int] = None) -> bool:
        if self.running:
            return False
        if max_steps is not None:
            self.max_steps = max_steps
        if tick_interval_ms is not None:
            self.tick_interval_ms = tick_interval_ms
        if self.started_at is None:
            self.started_at = now_ms()
        self._task = asyncio.create_task(self._run())
        logger.info("swarm started agents=%s max_steps=%s", len(self.agents), self.max_steps)
        return True

    async def stop(self) -> bool:
        task = self._task
        if task is None or task.done():
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("swarm stopped step=%s", self.step)
        return True

    async def run(self, steps: int) -> SwarmMetrics:
        """Advance the swarm synchronously for ``steps`` ticks."""

        if self.started_at is None:
            self.started_at = now_ms()
        for _ in range(steps):
            await self.tick()
        return self.metrics

    async def _run(self) -> None:
        while self.step < self.max_steps:
            await self.tick()
            await asyncio.sleep(self.tick_interval_ms / 1000)
        logger.info("swarm completed step=%s max_steps=%s", self.step, self.max_steps)
        await self.ws_manager.broadcast({"type": "status", "status": "completed", "step": self.step})

    async def tick(self) -> dict[str, Any]:
        self.step += 1
        self.channel.refresh_density()
        if self.channel.check_phase_transition(self.step):
            await self.ws_manager.broadcast(
                {"type": "phase_transition", "step": self.step, "density": self.channel.density}
            )

        thought_marks = [len(agent.state.thoughts) for agent in self.agents]
        emitted = await asyncio.gather(*(self._guarded_step(agent) for agent in self.agents))
        for pheromone in emitted:
            if pheromone is not None:
                self.channel.emit(pheromone)

        self._collect_streams(thought_marks)
        self._update_sync_peers()
        self.channel.decay(settings.pheromone_decay)

        if settings.collaboration_interval > 0 and self.step % settings.collaboration_interval == 0:
            self._scan_collaboration()
        if settings.collective_interval > 0 and self.step % settings.collective_interval == 0:
            self._synthesize_collective()

        self.metrics = compute_metrics([a.state for a in self.agents], self.channel, self.collective_memories)
        snapshot = self.snapshot()
        await self.ws_manager.broadcast({"type": "tick", **snapshot})
        return snapshot

    def inject(self, pheromone: Pheromone) -> None:
        self.channel.emit(pheromone)
        logger.info("pheromone injected agent=%s domain=%s", pheromone.agent_id, pheromone.domain)

    def snapshot(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "running": self.running,
            "density": self.channel.density,
            "critical_threshold": self.channel.critical_threshold,
            "phase_transition_occurred": self.channel.phase_transition_occurred,
            "transition_step": self.channel.transition_step,
            "metrics": asdict(self.metrics),
            "agents": [serialize_agent_summary(agent.state) for agent in self.agents],
        }

    async def aclose(self) -> None:
        await self.stop()
        await self.github.aclose()

    async def _guarded_step(self, agent: SwarmAgent) -> Optional[Pheromone]:
        try:
            return await agent.step(self.channel)
        except Exception as exc:
            logger.warning(
                "agent step failed step=%s agent=%s reason=%s",
                self.step,
                agent.state.name,
                f"{type(exc).__name__}: {str(exc)[:160]}",
            )
            return None

    def _collect_streams(self, thought_marks: list[int]) -> None:
        streamed = {d.id for d in self.decision_stream}
        for agent, mark in zip(self.agents, thought_marks):
            self.thought_stream.extend(agent.state.thoughts[mark:])
            candidates = list(agent.state.decisions[-3:])
            if agent.state.current_decision is not None:
                candidates.append(agent.state.current_decision)
            for decision in candidates:
                if decision.id not in streamed:
                    self.decision_stream.append(decision)
                    streamed.add(decision.id)

    def _update_sync_peers(self) -> None:
        synced = [agent.state for agent in self.agents if agent.state.synchronized]
        for state in synced:
            state.synced_with = [other.id for other in synced if other.id != state.id]

    def _scan_collaboration(self) -> None:
        project = detect_collaborative_opportunity([a.state for a in self.agents], self.channel)
        if project is None:
            return
        if any(p.title == project.title for p in self.collaborative_projects):
            return
        self.collaborative_projects.append(project)

    def _synthesize_collective(self) -> None:
        created = synthesize_collective_memory(self.channel, self.collective_memories)
        if not created:
            return
        by_id = {agent.state.id: agent.state for agent in self.agents}
        for memory in created:
            for contributor in memory.contributors:
                if contributor in by_id:
                    by_id[contributor].contributions_to_collective += 1
            logger.info(
                "collective memory formed step=%s topic=%s contributors=%s",
                self.step,
                memory.topic,
                len(memory.contributors),
            )
        self.collective_memories.extend(created)
