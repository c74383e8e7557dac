"""GitHub client parsing and degradation against a mocked transport."""

import asyncio
import base64

import httpx

from swarm_mind.agents.github import GitHubClient, issue_difficulty, score_files
from swarm_mind.agents.types import GitHubIssue


def _client(handler) -> GitHubClient:
    return GitHubClient(base_url="https://api.github.test", token="t0k", transport=httpx.MockTransport(handler))


def test_discover_builds_query_and_parses_items():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "items": [
                    {
                        "full_name": "acme/widgets",
                        "description": "Widgets",
                        "language": "Python",
                        "stargazers_count": 120,
                        "topics": ["ui"],
                    },
                    {"full_name": "broken"},
                ]
            },
        )

    repos = asyncio.run(_client(handler).discover("widgets", language="Python", min_stars=10, limit=5))

    assert [r.full_name for r in repos] == ["acme/widgets"]
    assert repos[0].stars == 120
    assert repos[0].topics == ["ui"]
    request = seen[0]
    assert request.url.path == "/search/repositories"
    assert request.url.params["q"] == "widgets language:Python stars:>=10"
    assert request.headers["Authorization"] == "Bearer t0k"


def test_list_issues_skips_pull_requests_and_rates_difficulty():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/acme/widgets/issues"
        return httpx.Response(
            200,
            json=[
                {"number": 1, "title": "Typo", "labels": [{"name": "good first issue"}]},
                {"number": 2, "title": "PR", "pull_request": {}, "labels": []},
                {"number": 3, "title": "Rewrite scheduler", "labels": [{"name": "complex"}]},
                {"number": 4, "title": "Crash", "labels": []},
            ],
        )

    issues = asyncio.run(_client(handler).list_issues("acme", "widgets"))

    assert [i.number for i in issues] == [1, 3, 4]
    assert [i.difficulty for i in issues] == ["easy", "hard", "medium"]


def test_issue_difficulty_hard_wins_over_easy():
    assert issue_difficulty(["beginner", "expert"]) == "hard"
    assert issue_difficulty([]) == "medium"


def test_errors_degrade_to_empty_results():
    def failing(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route", request=request)

    for handler in (failing, unreachable):
        client = _client(handler)
        assert asyncio.run(client.discover("rust")) == []
        assert asyncio.run(client.trending("rust")) == []
        assert asyncio.run(client.list_issues("a", "b")) == []
        assert asyncio.run(client.build_repo_context("a", "b")) is None
        assert asyncio.run(client.read_file("a", "b", "x.py")) == ""


def test_build_repo_context_collects_structure_readme_and_commits():
    readme = base64.b64encode(b"# Widgets\nA widget toolkit.").decode()

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/repos/acme/widgets":
            return httpx.Response(200, json={"full_name": "acme/widgets", "description": "Widgets", "stargazers_count": 9})
        if path == "/repos/acme/widgets/git/trees/HEAD":
            return httpx.Response(
                200,
                json={"tree": [{"path": "src/main.py"}, {"path": "node_modules/x/index.js"}, {"path": "README.md"}]},
            )
        if path == "/repos/acme/widgets/readme":
            return httpx.Response(200, json={"content": readme})
        if path == "/repos/acme/widgets/commits":
            return httpx.Response(200, json=[{"commit": {"message": "Add scheduler\n\nlong body"}}])
        if path == "/repos/acme/widgets/issues":
            return httpx.Response(200, json=[{"number": 7, "title": "Slow start", "labels": []}])
        return httpx.Response(404)

    context = asyncio.run(_client(handler).build_repo_context("acme", "widgets", "scheduler"))

    assert context is not None
    assert context.repo.full_name == "acme/widgets"
    assert context.readme_excerpt.startswith("# Widgets")
    assert context.recent_commits == ["Add scheduler"]
    assert [f.path for f in context.key_files] == ["src/main.py"]
    assert [i.number for i in context.issues] == [7]


def test_build_repo_context_skips_malformed_commit_entries():
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/repos/acme/widgets":
            return httpx.Response(200, json={"full_name": "acme/widgets"})
        if path == "/repos/acme/widgets/commits":
            return httpx.Response(
                200,
                json=["oops", None, {"commit": "flat"}, {"commit": {"message": 42}}, {"commit": {"message": "Fix build"}}],
            )
        return httpx.Response(404)

    context = asyncio.run(_client(handler).build_repo_context("acme", "widgets"))

    assert context is not None
    assert context.recent_commits == ["Fix build"]


def test_score_files_ranks_entry_points_and_issue_terms():
    paths = [
        "src/main.py",
        "src/parser/lexer.py",
        "docs/guide.md",
        "dist/bundle.js",
        "tests/test_lexer.py",
    ]
    issue = GitHubIssue(owner="a", repo="b", number=1, title="Lexer drops unicode")

    scored = score_files(paths, ["parser"], issue)

    by_path = {f.path: f.score for f in scored}
    assert "dist/bundle.js" not in by_path
    assert "docs/guide.md" not in by_path
    assert by_path["src/parser/lexer.py"] == 2 + 2 + 3
    assert by_path["src/main.py"] == 5
    assert scored[0].path == "src/parser/lexer.py"
