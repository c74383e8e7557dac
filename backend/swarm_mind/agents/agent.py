"""Per-agent state machine.

An agent moves through a 2D idea space, absorbs pheromones emitted by
others, and on each tick either explores (discovering repositories and
emitting knowledge) or runs an engineering step (think, decide, execute).
The share of engineering steps ramps up with the agent's step count.
"""

import asyncio
import logging
import math
import random
from typing import Optional

from ..config import settings
from ..persistence import PersistenceStore
from ..utils import clamp, now_ms
from .channel import PheromoneChannel
from .decider import generate_candidate_decisions, select_decision, should_switch
from .executor import SandboxExecutor
from .github import GitHubClient
from .thinker import Thinker
from .types import (
    AgentDecision,
    AgentPersonality,
    AgentThought,
    AutonomousAgentState,
    DecisionResult,
    DecisionStatus,
    GitHubIssue,
    GitHubRepo,
    Pheromone,
    Position,
    Velocity,
)

logger = logging.getLogger(__name__)

DOMAINS = [
    "data structures and algorithms",
    "distributed systems architecture",
    "cryptographic primitives",
    "network protocols and security",
    "database optimization patterns",
    "compiler design techniques",
    "operating system internals",
    "machine learning optimization",
    "consensus mechanisms",
    "memory management strategies",
]

NAMES = ["Neuron-A", "Neuron-B", "Neuron-C"]

PERSONALITY_PRESETS: list[tuple[str, AgentPersonality]] = [
    ("Explorer", AgentPersonality(curiosity=0.9, diligence=0.4, boldness=0.3, sociability=0.6)),
    ("Synthesizer", AgentPersonality(curiosity=0.7, diligence=0.5, boldness=0.4, sociability=0.9)),
    ("Builder", AgentPersonality(curiosity=0.5, diligence=0.6, boldness=0.9, sociability=0.3)),
]

# Used only when discovery returns nothing.
FALLBACK_NOTES: dict[str, list[str]] = {
    "data structures and algorithms": [
        "Cache-oblivious layouts keep tree searches close to optimal I/O without tuning for block size.",
        "Cuckoo hashing with a small overflow stash gives constant worst-case lookups at high load factors.",
        "Finger trees annotated with a monoid support logarithmic split and concatenation for any associative summary.",
    ],
    "distributed systems architecture": [
        "Leader leases allow linearizable reads to skip log replication while the lease is valid.",
        "Delta-state CRDTs ship only recent mutations, which cuts replication bandwidth for sparse updates.",
        "Gossip dissemination reaches the whole cluster in a logarithmic number of rounds with high probability.",
    ],
    "cryptographic primitives": [
        "Sponge constructions turn a fixed permutation into hashing, MACs and authenticated encryption.",
        "Merkle mountain ranges give append-only commitments with logarithmic proofs and cheap appends.",
        "Aggregatable signatures let a verifier check many signers with a single pairing equation.",
    ],
    "network protocols and security": [
        "Zero round-trip resumption removes the handshake from repeat connections at the cost of replay protection.",
        "Kernel-bypass packet processing moves the hot path to user space and polls instead of taking interrupts.",
        "Model-based congestion control probes bandwidth and RTT directly instead of reacting to loss.",
    ],
    "database optimization patterns": [
        "Adaptive radix trees pick node sizes per fan-out and stay compact on sparse key spaces.",
        "Zone maps let scans skip whole pages whose min and max cannot satisfy the predicate.",
        "Morsel-driven scheduling splits queries into small work units that adapt to NUMA placement.",
    ],
    "compiler design techniques": [
        "A sea-of-nodes IR merges control and data flow so value numbering becomes a single pass.",
        "Straight-line SLP vectorization finds SIMD opportunities that loop vectorizers miss.",
        "Splitting live ranges at loop boundaries lowers register pressure in hot inner loops.",
    ],
    "operating system internals": [
        "Submission and completion rings batch many I/O requests behind a single system call.",
        "Verified in-kernel bytecode runs tracing hooks at near native speed without loading modules.",
        "Huge pages shrink TLB pressure for heaps that span many gigabytes.",
    ],
    "machine learning optimization": [
        "Speculative decoding drafts tokens with a small model and verifies them in one large-model pass.",
        "Tiled attention keeps working sets in on-chip memory and avoids materializing the score matrix.",
        "Post-training weight quantization to four bits keeps most accuracy with a fraction of the memory.",
    ],
    "consensus mechanisms": [
        "Separating data dissemination from ordering lets throughput scale with the mempool, not the leader.",
        "Pipelined BFT protocols overlap phases so each block needs one new round in the common case.",
        "Repeated subsampled voting reaches agreement quickly without all-to-all messaging.",
    ],
    "memory management strategies": [
        "Size-class slab allocation keeps internal fragmentation low for common object sizes.",
        "Per-thread caches serve most small allocations without touching a shared lock.",
        "Hazard pointers make lock-free reclamation safe with space bounded by the thread count.",
    ],
}

CENTER = (500.0, 400.0)
BOUNDS_X = (50.0, 950.0)
BOUNDS_Y = (50.0, 750.0)
DAMPING = 0.85
CENTER_PULL = 0.05
ORBIT_FACTOR = 0.01
ATTRACTION_MIN_STRENGTH = 0.5
ABSORB_MIN_STRENGTH = 0.2
ABSORB_PROBABILITY_FACTOR = 0.6
ABSORB_ENERGY_GAIN = 0.05
SYNC_MIN_ABSORBED = 3
SYNC_MIN_ENERGY = 0.5
ENGINEERING_RAMP_STEPS = 50
ENGINEERING_MAX_SHARE = 0.8
MAX_KNOWN_REPOS = 5
MAX_KNOWN_ISSUES = 5
MAX_EXECUTION_ATTEMPTS = 3


def generate_personality(index: int, rng: random.Random) -> tuple[str, AgentPersonality]:
    """Preset by index, each trait jittered by up to +/-0.05."""

    name, preset = PERSONALITY_PRESETS[index % len(PERSONALITY_PRESETS)]

    def jitter(value: float) -> float:
        return clamp(value + (rng.random() - 0.5) * 0.1)

    return name, AgentPersonality(
        curiosity=jitter(preset.curiosity),
        diligence=jitter(preset.diligence),
        boldness=jitter(preset.boldness),
        sociability=jitter(preset.sociability),
    )


class SwarmAgent:
    """One autonomous member of the swarm and its private discovery state."""

    def __init__(
        self,
        index: int,
        *,
        rng: Optional[random.Random] = None,
        thinker: Optional[Thinker] = None,
        github: Optional[GitHubClient] = None,
        executor: Optional[SandboxExecutor] = None,
        store: Optional[PersistenceStore] = None,
        token_budget: Optional[int] = None,
        engineering_enabled: Optional[bool] = None,
    ) -> None:
        self.rng = rng or random.Random()
        self.thinker = thinker or Thinker()
        self.github = github or GitHubClient()
        self.store = store
        self.executor = executor or SandboxExecutor(
            self.thinker,
            self.github,
            on_thought=store.save_thought if store else None,
        )
        self.engineering_enabled = settings.engineering_enabled if engineering_enabled is None else engineering_enabled
        self.decision_temperature = settings.decision_temperature
        self.execution_timeout_s = settings.execution_timeout_ms / 1000
        self.discovery_topics = list(settings.github_discovery_topics) or ["software engineering"]
        self.discovered_repos: list[GitHubRepo] = []
        self.discovered_issues: list[GitHubIssue] = []

        angle = index / 8 * math.pi * 2
        radius = 300 + self.rng.random() * 200
        specialization, personality = generate_personality(index, self.rng)
        self.state = AutonomousAgentState(
            name=NAMES[index] if index < len(NAMES) else f"Neuron-{index}",
            position=Position(x=CENTER[0] + math.cos(angle) * radius, y=CENTER[1] + math.sin(angle) * radius),
            velocity=Velocity(dx=(self.rng.random() - 0.5) * 8, dy=(self.rng.random() - 0.5) * 8),
            exploration_target=DOMAINS[index % len(DOMAINS)],
            energy=0.3 + self.rng.random() * 0.3,
            personality=personality,
            specialization=specialization,
            token_budget=settings.token_budget_per_agent if token_budget is None else token_budget,
        )

    async def step(self, channel: PheromoneChannel) -> Optional[Pheromone]:
        """Run one tick and return the pheromone emitted, if any."""

        self.state.step_count += 1
        self.move(channel)
        absorbed = self.absorb_pheromones(channel)

        decision = self.state.current_decision
        in_flight = decision is not None and decision.status == DecisionStatus.executing
        if in_flight and self.state.budget_remaining <= 0:
            # Out of budget: continue_execution will abandon it.
            emitted = await self.continue_execution()
        elif self._should_engineer():
            if in_flight:
                emitted = await self.continue_execution()
            else:
                emitted = await self._engineering_step(channel, absorbed)
        else:
            emitted = await self._explore(absorbed)

        self.check_sync(channel)
        return emitted

    def move(self, channel: PheromoneChannel) -> None:
        pos = self.state.position
        vel = self.state.velocity
        if self.state.synchronized:
            cx, cy = CENTER
            vel.dx += (cx - pos.x) * CENTER_PULL
            vel.dy += (cy - pos.y) * CENTER_PULL
            vel.dx += (pos.y - cy) * ORBIT_FACTOR
            vel.dy += -(pos.x - cx) * ORBIT_FACTOR
        else:
            vel.dx += (self.rng.random() - 0.5) * 4
            vel.dy += (self.rng.random() - 0.5) * 4
            for pheromone in channel.snapshot():
                if pheromone.agent_id == self.state.id or pheromone.id in self.state.absorbed:
                    continue
                if pheromone.strength > ATTRACTION_MIN_STRENGTH:
                    vel.dx += (self.rng.random() - 0.5) * pheromone.strength * 3
                    vel.dy += (self.rng.random() - 0.5) * pheromone.strength * 3

        vel.dx *= DAMPING
        vel.dy *= DAMPING
        pos.x = clamp(pos.x + vel.dx, *BOUNDS_X)
        pos.y = clamp(pos.y + vel.dy, *BOUNDS_Y)

    def absorb(self, pheromone: Pheromone, channel: PheromoneChannel) -> bool:
        """Absorb one pheromone; a second call for the same id is a no-op."""

        if pheromone.agent_id == self.state.id or pheromone.id in self.state.absorbed:
            return False
        self.state.absorbed.add(pheromone.id)
        self.state.energy = clamp(self.state.energy + ABSORB_ENERGY_GAIN)
        channel.reinforce(pheromone)
        return True

    def absorb_pheromones(self, channel: PheromoneChannel) -> list[Pheromone]:
        absorbed: list[Pheromone] = []
        for pheromone in channel.snapshot():
            if pheromone.agent_id == self.state.id or pheromone.id in self.state.absorbed:
                continue
            if pheromone.strength <= ABSORB_MIN_STRENGTH:
                continue
            if self.rng.random() < pheromone.strength * ABSORB_PROBABILITY_FACTOR and self.absorb(pheromone, channel):
                absorbed.append(pheromone)
        return absorbed

    def check_sync(self, channel: PheromoneChannel) -> bool:
        """Latch synchronization; returns True only on the tick it happens."""

        if self.state.synchronized:
            return False
        if (
            channel.density >= channel.critical_threshold
            and len(self.state.absorbed) >= SYNC_MIN_ABSORBED
            and self.state.energy > SYNC_MIN_ENERGY
        ):
            self.state.synchronized = True
            self.state.energy = 1.0
            logger.info(
                "agent synchronized agent=%s absorbed=%s step=%s",
                self.state.name,
                len(self.state.absorbed),
                self.state.step_count,
            )
            return True
        return False

    async def continue_execution(self) -> Optional[Pheromone]:
        """Resume or abandon the decision left in flight by an earlier tick."""

        decision = self.state.current_decision
        if decision is None:
            return None

        if decision.attempts >= MAX_EXECUTION_ATTEMPTS or should_switch(self.state, decision.result, self.rng):
            self._finish(decision, DecisionStatus.failed)
            self.state.current_action = "switching tasks"
            logger.info(
                "decision abandoned agent=%s action=%s attempts=%s",
                self.state.name,
                decision.action.kind.value,
                decision.attempts,
            )
            return None

        self.state.current_action = f"continuing {decision.action.kind.value}"
        result = await self._execute(decision)
        if result is None:
            return None
        if result.success:
            return self._complete(decision, result)
        self._keep_in_flight(decision, result)
        return None

    def _should_engineer(self) -> bool:
        if not self.engineering_enabled:
            return False
        if self.state.budget_remaining <= 0:
            return False
        share = min(ENGINEERING_MAX_SHARE, self.state.step_count / ENGINEERING_RAMP_STEPS)
        return self.rng.random() < share

    async def _engineering_step(self, channel: PheromoneChannel, absorbed: list[Pheromone]) -> Optional[Pheromone]:
        if self.state.budget_remaining <= 0:
            self.state.current_action = "budget exhausted"
            return None

        self.state.current_action = "thinking"
        try:
            if absorbed and self.state.personality.sociability > 0.4:
                thought, tokens = await self.thinker.synthesize_knowledge(self.state, absorbed)
            else:
                if self.discovered_repos:
                    trigger = "repo_analysis"
                    observation = (
                        f"Have studied {len(self.state.repos_studied)} repos. "
                        f"Discovered {len(self.discovered_issues)} issues. "
                        f"Known repos: {', '.join(r.full_name for r in self.discovered_repos[:3])}"
                    )
                else:
                    trigger = "exploration"
                    observation = f"Step {self.state.step_count}, exploring {self.state.exploration_target}"
                thought, tokens = await self.thinker.form_thought(
                    self.state,
                    trigger,
                    observation,
                    f"Specialization: {self.state.specialization}, energy: {self.state.energy:.2f}",
                )
            self.state.tokens_used += tokens
            self._record_thought(thought)

            await self._gather_material()

            self.state.current_action = "deciding"
            candidates = generate_candidate_decisions(
                self.state,
                channel,
                self.discovered_repos,
                self.discovered_issues,
                self.state.thoughts,
            )
            decision = select_decision(candidates, self.decision_temperature, self.rng)
            if decision is None:
                self.state.current_action = "idle (no candidates)"
                return None

            decision.status = DecisionStatus.executing
            self.state.current_decision = decision
            if self.store:
                self.store.save_decision(decision)
            logger.info(
                "decision taken agent=%s action=%s priority=%.3f candidates=%s",
                self.state.name,
                decision.action.kind.value,
                decision.priority,
                len(candidates),
            )

            self.state.current_action = f"executing {decision.action.kind.value}"
            result = await self._execute(decision)
            if result is None:
                return None
            if result.success:
                return self._complete(decision, result)
            self._keep_in_flight(decision, result)
        except Exception as exc:
            logger.warning(
                "engineering step failed agent=%s reason=%s",
                self.state.name,
                f"{type(exc).__name__}: {str(exc)[:160]}",
            )
            self.state.current_action = "recovering from error"
        return None

    async def _gather_material(self) -> None:
        if len(self.discovered_repos) < MAX_KNOWN_REPOS and self.rng.random() < self.state.personality.curiosity:
            topic = self.rng.choice(self.discovery_topics)
            self._remember_repos(await self.github.discover(topic, limit=5, min_stars=10))
            if self.rng.random() < 0.3:
                self._remember_repos(await self.github.trending(topic, 7))

        if len(self.discovered_issues) < MAX_KNOWN_ISSUES and self.discovered_repos:
            repo = self.rng.choice(self.discovered_repos)
            self.discovered_issues.extend(await self.github.list_issues(repo.owner, repo.repo, 5))

    async def _execute(self, decision: AgentDecision) -> Optional[DecisionResult]:
        """Run the executor under the timeout; ``None`` means retry later."""

        decision.attempts += 1
        try:
            result = await asyncio.wait_for(
                self.executor.execute(self.state, decision),
                timeout=self.execution_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "decision timed out agent=%s action=%s attempt=%s",
                self.state.name,
                decision.action.kind.value,
                decision.attempts,
            )
            return None
        except Exception as exc:
            logger.warning(
                "decision execution failed agent=%s action=%s reason=%s",
                self.state.name,
                decision.action.kind.value,
                f"{type(exc).__name__}: {str(exc)[:160]}",
            )
            return None
        self.state.tokens_used += result.tokens_used
        return result

    def _complete(self, decision: AgentDecision, result: DecisionResult) -> Optional[Pheromone]:
        decision.result = result
        self._finish(decision, DecisionStatus.completed)
        self.state.current_action = f"completed {decision.action.kind.value}"
        if result.artifacts:
            return self._create_engineering_pheromone(decision, result)
        return None

    def _keep_in_flight(self, decision: AgentDecision, result: DecisionResult) -> None:
        decision.result = result
        if self.store:
            self.store.update_decision_status(decision.id, DecisionStatus.executing, result)
        self.state.current_action = f"retrying {decision.action.kind.value}"

    def _finish(self, decision: AgentDecision, status: DecisionStatus) -> None:
        decision.status = status
        decision.completed_at = now_ms()
        self.state.decisions.append(decision)
        self.state.current_decision = None
        if self.store:
            self.store.update_decision_status(decision.id, status, decision.result)

    def _create_engineering_pheromone(self, decision: AgentDecision, result: DecisionResult) -> Pheromone:
        kinds = {artifact.kind for artifact in result.artifacts}
        if "pr_url" in kinds:
            pheromone_type = "pr"
        elif "code_change" in kinds:
            pheromone_type = "code"
        elif "technique" in kinds:
            pheromone_type = "technique"
        else:
            pheromone_type = "knowledge"

        repo_ref = decision.action.repo_ref
        pheromone = Pheromone(
            agent_id=self.state.id,
            content=result.summary,
            domain=self.state.exploration_target,
            confidence=decision.priority,
            strength=0.6 + decision.priority * 0.3,
            pheromone_type=pheromone_type,
            artifacts=list(result.artifacts),
            github_refs=[repo_ref] if repo_ref else [],
            code_snippets=[a.content[:200] for a in result.artifacts if a.kind == "code_change"],
        )
        self.state.knowledge.append(pheromone)
        self.state.discoveries += 1
        return pheromone

    async def _explore(self, absorbed: list[Pheromone]) -> Optional[Pheromone]:
        self.state.current_action = "exploring github"
        chance = 0.7 if self.state.synchronized else 0.4
        if self.rng.random() > chance:
            return None

        domain = self.state.exploration_target
        connections: set[str] = set()

        if absorbed and self.rng.random() < 0.6:
            source = self.rng.choice(absorbed)
            connections.add(source.id)
            confidence = min(1.0, source.confidence + 0.1)
            domain = source.domain
            keywords = [w for w in source.content.split() if len(w) > 4][:3]
            repos = await self.github.discover(" ".join(keywords) or self.state.exploration_target, limit=3)
            if repos:
                repo = repos[0]
                self._remember_repos([repo])
                content = f"github:{repo.full_name} - {repo.description}"
                logger.info("github bridge agent=%s repo=%s", self.state.name, repo.full_name)
            else:
                content = self._fallback_note(source.domain)
            if source.strength > 0.6:
                self.state.exploration_target = source.domain
        else:
            topic = self.rng.choice(self.discovery_topics)
            repos = await self.github.discover(topic, limit=5, min_stars=10)
            confidence = 0.4 + self.rng.random() * 0.4
            if repos:
                repo = self.rng.choice(repos)
                self._remember_repos([repo])
                content = f"github:{repo.full_name} ({repo.stars} stars, {repo.language or 'unknown'}) - {repo.description}"
                logger.info("github discovery agent=%s repo=%s", self.state.name, repo.full_name)
            else:
                content = self._fallback_note(self.state.exploration_target)
                confidence = 0.3 + self.rng.random() * 0.4

        pheromone = Pheromone(
            agent_id=self.state.id,
            content=content,
            domain=domain,
            confidence=confidence,
            strength=0.5 + confidence * 0.3,
            connections=connections,
        )
        self.state.knowledge.append(pheromone)
        self.state.discoveries += 1
        return pheromone

    def _fallback_note(self, domain: str) -> str:
        pool = FALLBACK_NOTES.get(domain) or FALLBACK_NOTES[DOMAINS[0]]
        return self.rng.choice(pool)

    def _remember_repos(self, repos: list[GitHubRepo]) -> None:
        known = {r.full_name for r in self.discovered_repos}
        for repo in repos:
            if repo.full_name not in known:
                self.discovered_repos.append(repo)
                known.add(repo.full_name)

    def _record_thought(self, thought: AgentThought) -> None:
        self.state.thoughts.append(thought)
        if self.store:
            self.store.save_thought(thought)
