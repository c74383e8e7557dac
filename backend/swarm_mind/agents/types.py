"""Core data model shared by the swarm engine.

Pheromones, agent state, the closed union of agent actions, decisions,
thoughts, and the candidate material (repositories and issues) that the
decision engine consumes. Behavior lives in the sibling modules; this module
only holds data and a few derived properties.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union
from uuid import uuid4

from ..utils import attestation_hash, clamp, now_ms


def _new_id() -> str:
    return str(uuid4())


class ActionKind(str, Enum):
    study_repo = "study_repo"
    fix_issue = "fix_issue"
    write_code = "write_code"
    refactor = "refactor"
    document = "document"
    share_technique = "share_technique"
    contribute_pr = "contribute_pr"
    explore_topic = "explore_topic"


class RiskLevel(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class DecisionStatus(str, Enum):
    pending = "pending"
    executing = "executing"
    completed = "completed"
    failed = "failed"


class ProjectStatus(str, Enum):
    proposed = "proposed"
    active = "active"
    completed = "completed"


# Actions


class _RepoScoped:
    """Mixin for action variants that target one ``owner/repo``."""

    owner: str
    repo: str

    @property
    def repo_ref(self) -> Optional[str]:
        return f"{self.owner}/{self.repo}"


class _Unscoped:
    @property
    def repo_ref(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class StudyRepo(_RepoScoped):
    kind: ClassVar[ActionKind] = ActionKind.study_repo
    owner: str
    repo: str
    topic: Optional[str] = None


@dataclass(frozen=True)
class FixIssue(_RepoScoped):
    kind: ClassVar[ActionKind] = ActionKind.fix_issue
    owner: str
    repo: str
    issue_number: int


@dataclass(frozen=True)
class WriteCode(_Unscoped):
    kind: ClassVar[ActionKind] = ActionKind.write_code
    description: str
    target_repo: Optional[str] = None


@dataclass(frozen=True)
class Refactor(_RepoScoped):
    kind: ClassVar[ActionKind] = ActionKind.refactor
    owner: str
    repo: str
    target: str


@dataclass(frozen=True)
class Document(_RepoScoped):
    kind: ClassVar[ActionKind] = ActionKind.document
    owner: str
    repo: str
    target: str


@dataclass(frozen=True)
class ShareTechnique(_Unscoped):
    kind: ClassVar[ActionKind] = ActionKind.share_technique
    technique: str
    source_repo: Optional[str] = None


@dataclass(frozen=True)
class ContributePR(_RepoScoped):
    kind: ClassVar[ActionKind] = ActionKind.contribute_pr
    owner: str
    repo: str
    description: str


@dataclass(frozen=True)
class ExploreTopic(_Unscoped):
    kind: ClassVar[ActionKind] = ActionKind.explore_topic
    topic: str


AgentAction = Union[
    StudyRepo,
    FixIssue,
    WriteCode,
    Refactor,
    Document,
    ShareTechnique,
    ContributePR,
    ExploreTopic,
]

ACTION_TYPES: dict[ActionKind, type] = {
    ActionKind.study_repo: StudyRepo,
    ActionKind.fix_issue: FixIssue,
    ActionKind.write_code: WriteCode,
    ActionKind.refactor: Refactor,
    ActionKind.document: Document,
    ActionKind.share_technique: ShareTechnique,
    ActionKind.contribute_pr: ContributePR,
    ActionKind.explore_topic: ExploreTopic,
}


def action_payload(action: AgentAction) -> dict[str, Any]:
    """Flatten an action into a JSON-friendly dict tagged with its kind."""

    return {"type": action.kind.value, **asdict(action)}


def action_from_payload(payload: dict[str, Any]) -> AgentAction:
    data = dict(payload)
    kind = ActionKind(data.pop("type"))
    return ACTION_TYPES[kind](**data)


# Signals


@dataclass
class Artifact:
    kind: str  # code_change | pr_url | analysis | technique
    content: str
    file_path: Optional[str] = None
    url: Optional[str] = None


@dataclass
class Pheromone:
    """A knowledge fragment emitted into the shared channel.

    ``confidence`` and ``strength`` are clamped into ``[0, 1]`` on creation;
    afterwards only the channel mutates ``strength``.
    """

    agent_id: str
    content: str
    domain: str
    confidence: float
    strength: float
    connections: set[str] = field(default_factory=set)
    id: str = field(default_factory=_new_id)
    timestamp: int = field(default_factory=now_ms)
    attestation: str = ""
    pheromone_type: str = "knowledge"
    artifacts: list[Artifact] = field(default_factory=list)
    github_refs: list[str] = field(default_factory=list)
    code_snippets: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.confidence = clamp(float(self.confidence))
        self.strength = clamp(float(self.strength))
        if not self.attestation:
            self.attestation = attestation_hash(f"{self.content}{self.agent_id}{self.timestamp}")


# Decisions


@dataclass
class DecisionCost:
    estimated_tokens: int
    estimated_time_ms: int
    risk_level: RiskLevel


@dataclass
class DecisionResult:
    success: bool
    summary: str
    artifacts: list[Artifact] = field(default_factory=list)
    tokens_used: int = 0


@dataclass
class AgentDecision:
    agent_id: str
    action: AgentAction
    cost: DecisionCost
    priority: float = 0.0
    status: DecisionStatus = DecisionStatus.pending
    result: Optional[DecisionResult] = None
    id: str = field(default_factory=_new_id)
    created_at: int = field(default_factory=now_ms)
    completed_at: Optional[int] = None
    attempts: int = 0


@dataclass
class AgentThought:
    agent_id: str
    trigger: str
    observation: str
    reasoning: str
    conclusion: str
    suggested_actions: list[str] = field(default_factory=list)
    confidence: float = 0.5
    id: str = field(default_factory=_new_id)
    timestamp: int = field(default_factory=now_ms)

    def __post_init__(self) -> None:
        self.confidence = clamp(float(self.confidence))


# Agents


@dataclass
class AgentPersonality:
    curiosity: float = 0.5
    diligence: float = 0.5
    boldness: float = 0.5
    sociability: float = 0.5


@dataclass
class Position:
    x: float
    y: float


@dataclass
class Velocity:
    dx: float = 0.0
    dy: float = 0.0


@dataclass
class AgentState:
    name: str
    position: Position
    velocity: Velocity
    exploration_target: str
    id: str = field(default_factory=_new_id)
    knowledge: list[Pheromone] = field(default_factory=list)
    absorbed: set[str] = field(default_factory=set)
    energy: float = 0.5
    synchronized: bool = False
    synced_with: list[str] = field(default_factory=list)
    step_count: int = 0
    discoveries: int = 0
    contributions_to_collective: int = 0


@dataclass
class AutonomousAgentState(AgentState):
    personality: AgentPersonality = field(default_factory=AgentPersonality)
    specialization: str = "Explorer"
    token_budget: int = 50000
    tokens_used: int = 0
    thoughts: list[AgentThought] = field(default_factory=list)
    decisions: list[AgentDecision] = field(default_factory=list)
    current_decision: Optional[AgentDecision] = None
    repos_studied: list[str] = field(default_factory=list)
    current_action: str = "initializing"

    @property
    def budget_remaining(self) -> int:
        return self.token_budget - self.tokens_used


# Candidate material


@dataclass
class GitHubRepo:
    owner: str
    repo: str
    description: str = ""
    language: str = ""
    stars: int = 0
    topics: list[str] = field(default_factory=list)
    relevance_score: float = 0.0

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass
class GitHubIssue:
    owner: str
    repo: str
    number: int
    title: str
    body: str = ""
    labels: list[str] = field(default_factory=list)
    difficulty: str = "medium"  # easy | medium | hard
    relevance_score: float = 0.0


@dataclass
class FileScore:
    path: str
    score: int
    reason: str
    key_snippets: list[str] = field(default_factory=list)


@dataclass
class RepoContext:
    repo: GitHubRepo
    structure: list[str] = field(default_factory=list)
    readme_excerpt: str = ""
    key_files: list[FileScore] = field(default_factory=list)
    issues: list[GitHubIssue] = field(default_factory=list)
    recent_commits: list[str] = field(default_factory=list)


# Swarm-level records


@dataclass
class CollaborativeProject:
    title: str
    description: str
    participants: list[str]
    repos: list[str]
    status: ProjectStatus = ProjectStatus.proposed
    id: str = field(default_factory=_new_id)
    created_at: int = field(default_factory=now_ms)


@dataclass
class CollectiveMemory:
    topic: str
    synthesis: str
    contributors: list[str]
    pheromone_ids: list[str]
    confidence: float
    attestation: str
    id: str = field(default_factory=_new_id)
    created_at: int = field(default_factory=now_ms)


@dataclass
class SwarmMetrics:
    total_pheromones: int = 0
    total_discoveries: int = 0
    total_syncs: int = 0
    avg_energy: float = 0.0
    density: float = 0.0
    synchronized_count: int = 0
    collective_memory_count: int = 0
    unique_domains_explored: int = 0
