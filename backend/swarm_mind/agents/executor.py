"""Sandboxed execution of agent decisions.

Each action kind maps to exactly one handler. Handlers read from GitHub and
reason through the thinker, but nothing is ever cloned, committed or pushed:
code changes only exist as artifacts on the returned result.
"""

import logging
from typing import Awaitable, Callable, Optional

from .adapters.base import CodeChange, SourceFile
from .github import GitHubClient
from .thinker import Thinker
from .types import (
    ActionKind,
    AgentAction,
    AgentDecision,
    AgentThought,
    Artifact,
    AutonomousAgentState,
    ContributePR,
    DecisionResult,
    Document,
    ExploreTopic,
    FixIssue,
    Refactor,
    ShareTechnique,
    StudyRepo,
    WriteCode,
)

logger = logging.getLogger(__name__)

REVIEW_ROUNDS = 2
MAX_CONTEXT_FILES = 3

Handler = Callable[[AutonomousAgentState, AgentAction], Awaitable[DecisionResult]]


class SandboxExecutor:
    """Executes decisions without touching any remote repository."""

    def __init__(
        self,
        thinker: Thinker,
        github: GitHubClient,
        on_thought: Optional[Callable[[AgentThought], None]] = None,
    ) -> None:
        self.thinker = thinker
        self.github = github
        self.on_thought = on_thought
        self._handlers: dict[ActionKind, Handler] = {
            ActionKind.study_repo: self._study_repo,
            ActionKind.fix_issue: self._out_of_scope,
            ActionKind.write_code: self._write_code,
            ActionKind.refactor: self._refactor,
            ActionKind.document: self._document,
            ActionKind.share_technique: self._share_technique,
            ActionKind.contribute_pr: self._out_of_scope,
            ActionKind.explore_topic: self._explore_topic,
        }

    async def execute(self, agent: AutonomousAgentState, decision: AgentDecision) -> DecisionResult:
        handler = self._handlers[decision.action.kind]
        result = await handler(agent, decision.action)
        logger.info(
            "decision executed agent=%s action=%s success=%s tokens=%s",
            agent.name,
            decision.action.kind.value,
            result.success,
            result.tokens_used,
        )
        return result

    async def _study_repo(self, agent: AutonomousAgentState, action: StudyRepo) -> DecisionResult:
        ref = action.repo_ref
        context = await self.github.build_repo_context(action.owner, action.repo, action.topic)
        if context is None:
            return DecisionResult(success=False, summary=f"Could not load {ref}")
        thought, tokens = await self.thinker.analyze_repo(agent, context)
        self._record(agent, thought)
        if ref not in agent.repos_studied:
            agent.repos_studied.append(ref)
        return DecisionResult(
            success=True,
            summary=f"Studied {ref}: {thought.conclusion[:160]}",
            artifacts=[Artifact(kind="analysis", content=thought.reasoning or thought.conclusion, url=f"https://github.com/{ref}")],
            tokens_used=tokens,
        )

    async def _write_code(self, agent: AutonomousAgentState, action: WriteCode) -> DecisionResult:
        target = f" for {action.target_repo}" if action.target_repo else ""
        return await self._patch_and_review(agent, f"{action.description}{target}", [])

    async def _refactor(self, agent: AutonomousAgentState, action: Refactor) -> DecisionResult:
        files = await self._context_files(action.owner, action.repo, action.target)
        return await self._patch_and_review(agent, f"Refactor {action.target} in {action.repo_ref}", files)

    async def _document(self, agent: AutonomousAgentState, action: Document) -> DecisionResult:
        files = await self._context_files(action.owner, action.repo, action.target)
        return await self._patch_and_review(agent, f"Document {action.target} in {action.repo_ref}", files)

    async def _share_technique(self, agent: AutonomousAgentState, action: ShareTechnique) -> DecisionResult:
        recent = "\n".join(f"  [{p.domain}] {p.content[:120]}" for p in agent.knowledge[-5:])
        thought, tokens = await self.thinker.form_thought(
            agent,
            "technique_sharing",
            action.technique,
            f"Source: {action.source_repo or 'own experience'}\nRecent knowledge:\n{recent or '  (none)'}",
        )
        self._record(agent, thought)
        content = thought.conclusion or action.technique
        return DecisionResult(
            success=True,
            summary=f"Shared technique: {content[:160]}",
            artifacts=[Artifact(kind="technique", content=content)],
            tokens_used=tokens,
        )

    async def _explore_topic(self, agent: AutonomousAgentState, action: ExploreTopic) -> DecisionResult:
        repos = await self.github.discover(action.topic, limit=5)
        listing = "\n".join(f"  {r.full_name} ({r.stars} stars): {r.description[:100]}" for r in repos)
        thought, tokens = await self.thinker.form_thought(
            agent,
            "exploration",
            f"Exploring {action.topic}: found {len(repos)} repositories",
            listing or "  (no repositories found)",
        )
        self._record(agent, thought)
        artifacts = [Artifact(kind="analysis", content=thought.conclusion)] if thought.conclusion else []
        return DecisionResult(
            success=bool(artifacts),
            summary=f"Explored {action.topic}: {thought.conclusion[:160]}",
            artifacts=artifacts,
            tokens_used=tokens,
        )

    async def _out_of_scope(self, agent: AutonomousAgentState, action: FixIssue | ContributePR) -> DecisionResult:
        return DecisionResult(
            success=False,
            summary=f"{action.kind.value} on {action.repo_ref} is out of scope: sandbox mode performs no repository writes",
        )

    async def _context_files(self, owner: str, repo: str, focus: str) -> list[SourceFile]:
        context = await self.github.build_repo_context(owner, repo, focus)
        if context is None:
            return []
        files: list[SourceFile] = []
        for scored in context.key_files[:MAX_CONTEXT_FILES]:
            content = await self.github.read_file(owner, repo, scored.path)
            if content:
                files.append(SourceFile(path=scored.path, content=content))
        return files

    async def _patch_and_review(
        self,
        agent: AutonomousAgentState,
        objective: str,
        files: list[SourceFile],
    ) -> DecisionResult:
        tokens = 0
        previous: Optional[str] = None
        changes: list[CodeChange] = []
        for _ in range(REVIEW_ROUNDS):
            patch = await self.thinker.generate_code(
                agent,
                objective,
                files,
                constraints="Keep changes minimal and self-contained.",
                previous_attempt=previous,
            )
            tokens += patch.tokens_used
            changes = patch.changes
            if not changes:
                return DecisionResult(success=False, summary=f"No changes produced for: {objective[:120]}", tokens_used=tokens)
            review = await self.thinker.review_code(agent, changes, objective)
            tokens += review.tokens_used
            if review.passed:
                return DecisionResult(
                    success=True,
                    summary=f"Prepared {len(changes)} change(s) for: {objective[:120]} (review {review.score:.0f}/10)",
                    artifacts=[
                        Artifact(kind="code_change", content=c.modified, file_path=c.path) for c in changes
                    ],
                    tokens_used=tokens,
                )
            previous = "\n".join(review.issues) or "Review did not pass"
        return DecisionResult(
            success=False,
            summary=f"Review rejected {len(changes)} change(s) for: {objective[:120]}",
            tokens_used=tokens,
        )

    def _record(self, agent: AutonomousAgentState, thought: AgentThought) -> None:
        agent.thoughts.append(thought)
        if self.on_thought is not None:
            self.on_thought(thought)
