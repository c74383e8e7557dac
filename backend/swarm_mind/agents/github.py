"""Repository and issue discovery over the GitHub REST API.

Every call degrades to an empty result on transport, status or payload
errors so agents keep ticking while offline or rate limited.
"""

import base64
import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath
from typing import Any, Optional

import httpx

from ..config import settings
from .types import FileScore, GitHubIssue, GitHubRepo, RepoContext

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = {".ts", ".js", ".py", ".rs", ".go", ".sol"}
ENTRY_POINT_NAMES = ("index", "main", "app", "server", "lib")
LOW_VALUE_EXTENSIONS = {".md", ".txt", ".lock", ".json", ".yaml", ".yml", ".toml"}
IGNORED_DIRS = ("node_modules/", "dist/", ".git/")
MAX_SCORED_FILES = 15
MAX_TREE_PATHS = 100

_EASY_LABEL = re.compile(r"good.first|beginner|easy", re.IGNORECASE)
_HARD_LABEL = re.compile(r"complex|hard|expert", re.IGNORECASE)


def issue_difficulty(labels: list[str]) -> str:
    difficulty = "medium"
    if any(_EASY_LABEL.search(label) for label in labels):
        difficulty = "easy"
    if any(_HARD_LABEL.search(label) for label in labels):
        difficulty = "hard"
    return difficulty


def score_files(
    paths: list[str],
    keywords: list[str],
    issue: Optional[GitHubIssue] = None,
) -> list[FileScore]:
    """Rank repository paths by how useful they look for a study or fix."""

    issue_terms: list[str] = []
    if issue is not None:
        issue_terms = [t for t in issue.title.lower().split() if len(t) > 3]

    scored: list[FileScore] = []
    for path in paths:
        if any(marker in path for marker in IGNORED_DIRS):
            continue
        lowered = path.lower()
        pure = PurePosixPath(lowered)
        ext = pure.suffix
        name = pure.name
        score = 0
        reasons: list[str] = []

        if ext in SOURCE_EXTENSIONS:
            score += 2
            reasons.append("source file")
        if any(key in name for key in ENTRY_POINT_NAMES):
            score += 3
            reasons.append("entry point")
        if "test" in name or "spec" in name:
            score += 1
            reasons.append("test file")
        for keyword in keywords:
            if keyword and keyword.lower() in lowered:
                score += 2
                reasons.append(f"matches keyword: {keyword}")
        for term in issue_terms:
            if term in lowered:
                score += 3
                reasons.append(f"matches issue term: {term}")
        if ext in LOW_VALUE_EXTENSIONS and "config" not in name:
            score = max(0, score - 2)

        if score > 0:
            scored.append(FileScore(path=path, score=score, reason=", ".join(reasons)))

    scored.sort(key=lambda f: f.score, reverse=True)
    return scored[:MAX_SCORED_FILES]


class GitHubClient:
    """Thin async wrapper over the GitHub REST endpoints agents need."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/vnd.github+json"}
        token = settings.github_token if token is None else token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        timeout_ms = timeout_ms or settings.github_timeout_ms
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.github_api_url).rstrip("/"),
            headers=headers,
            timeout=timeout_ms / 1000,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def discover(
        self,
        query: str,
        language: Optional[str] = None,
        min_stars: Optional[int] = None,
        limit: int = 10,
    ) -> list[GitHubRepo]:
        q = query.strip()
        if language:
            q = f"{q} language:{language}"
        if min_stars:
            q = f"{q} stars:>={min_stars}"
        payload = await self._get_json("/search/repositories", params={"q": q, "per_page": limit})
        return self._repos_from_search(payload)[:limit]

    async def trending(self, topic: str, since_days: int = 7) -> list[GitHubRepo]:
        since = (datetime.now(timezone.utc) - timedelta(days=since_days)).date().isoformat()
        payload = await self._get_json(
            "/search/repositories",
            params={"q": f"topic:{topic} created:>={since} stars:>=5", "sort": "stars", "per_page": 10},
        )
        return self._repos_from_search(payload)

    async def list_issues(self, owner: str, repo: str, limit: int = 10) -> list[GitHubIssue]:
        payload = await self._get_json(
            f"/repos/{owner}/{repo}/issues",
            params={"state": "open", "per_page": limit},
        )
        if not isinstance(payload, list):
            return []
        issues: list[GitHubIssue] = []
        for item in payload:
            if not isinstance(item, dict) or "pull_request" in item:
                continue
            labels = [str(label.get("name", "")) for label in item.get("labels") or [] if isinstance(label, dict)]
            issues.append(
                GitHubIssue(
                    owner=owner,
                    repo=repo,
                    number=int(item.get("number") or 0),
                    title=str(item.get("title") or ""),
                    body=str(item.get("body") or "")[:2000],
                    labels=labels,
                    difficulty=issue_difficulty(labels),
                )
            )
        return issues[:limit]

    async def build_repo_context(
        self,
        owner: str,
        repo: str,
        focus_topic: Optional[str] = None,
    ) -> Optional[RepoContext]:
        info = await self._get_json(f"/repos/{owner}/{repo}")
        if not isinstance(info, dict):
            return None
        repo_obj = self._repo_from_item(info) or GitHubRepo(owner=owner, repo=repo)

        structure: list[str] = []
        tree = await self._get_json(f"/repos/{owner}/{repo}/git/trees/HEAD", params={"recursive": 1})
        if isinstance(tree, dict):
            structure = [str(t.get("path")) for t in tree.get("tree") or [] if isinstance(t, dict) and t.get("path")]
            structure = structure[:MAX_TREE_PATHS]

        readme_excerpt = ""
        readme = await self._get_json(f"/repos/{owner}/{repo}/readme")
        if isinstance(readme, dict):
            readme_excerpt = self._decode_content(readme.get("content"))[:1500]

        recent_commits: list[str] = []
        commits = await self._get_json(f"/repos/{owner}/{repo}/commits", params={"per_page": 5})
        if isinstance(commits, list):
            for item in commits[:5]:
                if not isinstance(item, dict):
                    continue
                commit = item.get("commit")
                message = commit.get("message") if isinstance(commit, dict) else None
                if isinstance(message, str) and message:
                    recent_commits.append(message.splitlines()[0])

        keywords = focus_topic.split() if focus_topic else []
        return RepoContext(
            repo=repo_obj,
            structure=structure,
            readme_excerpt=readme_excerpt,
            key_files=score_files(structure, keywords),
            issues=await self.list_issues(owner, repo, 5),
            recent_commits=recent_commits,
        )

    async def read_file(self, owner: str, repo: str, path: str) -> str:
        payload = await self._get_json(f"/repos/{owner}/{repo}/contents/{path}")
        if not isinstance(payload, dict):
            return ""
        return self._decode_content(payload.get("content"))

    async def _get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "github request failed path=%s reason=%s",
                path,
                f"{type(exc).__name__}: {str(exc)[:160]}",
            )
            return None

    def _repos_from_search(self, payload: Any) -> list[GitHubRepo]:
        if not isinstance(payload, dict):
            return []
        repos: list[GitHubRepo] = []
        for item in payload.get("items") or []:
            repo = self._repo_from_item(item)
            if repo is not None:
                repos.append(repo)
        return repos

    def _repo_from_item(self, item: Any) -> Optional[GitHubRepo]:
        if not isinstance(item, dict):
            return None
        owner, _, name = str(item.get("full_name") or "").partition("/")
        if not owner or not name:
            return None
        return GitHubRepo(
            owner=owner,
            repo=name,
            description=str(item.get("description") or ""),
            language=str(item.get("language") or ""),
            stars=int(item.get("stargazers_count") or 0),
            topics=[str(t) for t in item.get("topics") or []],
        )

    def _decode_content(self, content: Any) -> str:
        if not content:
            return ""
        try:
            return base64.b64decode(str(content)).decode("utf-8", errors="replace")
        except ValueError:
            return ""
