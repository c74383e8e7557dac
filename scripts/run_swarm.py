#!/usr/bin/env python
"""Headless swarm run.

Advances the swarm for a fixed number of ticks without the API and prints
per-interval metrics plus a final summary of the collective.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path


class _NullBroadcaster:
    async def broadcast(self, payload) -> None:
        return None


async def _run(args: argparse.Namespace) -> int:
    from swarm_mind.db import engine, init_db
    from swarm_mind.orchestrator import Orchestrator
    from swarm_mind.persistence import PersistenceStore

    init_db()
    orchestrator = Orchestrator(
        _NullBroadcaster(),
        store=PersistenceStore(engine),
        agent_count=args.agents,
        seed=args.seed,
    )
    try:
        for _ in range(args.steps):
            await orchestrator.tick()
            if args.report_every > 0 and orchestrator.step % args.report_every == 0:
                m = orchestrator.metrics
                print(
                    f"[step {orchestrator.step:04d}] density={m.density:.3f} pheromones={m.total_pheromones} "
                    f"synced={m.synchronized_count}/{len(orchestrator.agents)} memories={m.collective_memory_count}"
                )
    finally:
        await orchestrator.aclose()

    print("\n=== SUMMARY ===")
    transition = orchestrator.channel.transition_step
    print(f"Phase transition: {'step ' + str(transition) if transition is not None else 'not reached'}")
    for agent in orchestrator.agents:
        s = agent.state
        print(
            f"- {s.name} ({s.specialization}): discoveries={s.discoveries} decisions={len(s.decisions)} "
            f"repos_studied={len(s.repos_studied)} tokens={s.tokens_used}/{s.token_budget}"
        )
    for project in orchestrator.collaborative_projects:
        print(f"* project: {project.title}")
    for memory in orchestrator.collective_memories:
        print(f"* memory [{memory.topic}] confidence={memory.confidence:.2f} contributors={len(memory.contributors)}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the swarm headless for a fixed number of ticks.")
    parser.add_argument("--steps", type=int, default=60)
    parser.add_argument("--agents", type=int, default=None)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--report-every", type=int, default=10)
    args = parser.parse_args()

    repo_root = Path(__file__).resolve().parent.parent
    backend_path = str(repo_root / "backend")
    if backend_path not in sys.path:
        sys.path.insert(0, backend_path)
    os.environ.setdefault("AI_MODE", "mock")
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(asctime)s %(levelname)s %(name)s %(message)s")

    print(f"[swarm] AI_MODE={os.environ['AI_MODE']} steps={args.steps}")
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
