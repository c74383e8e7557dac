"""FastAPI dashboard: read-only swarm snapshots plus pheromone injection."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .agents.types import Pheromone
from .config import settings
from .db import engine, init_db
from .messaging import ConnectionManager
from .orchestrator import Orchestrator
from .persistence import PersistenceStore
from .reporting import build_swarm_report, known_repos
from .schemas import PheromoneInject, SwarmStart
from .serializers import (
    serialize_agent_detail,
    serialize_agent_summary,
    serialize_decision,
    serialize_memory,
    serialize_pheromone,
    serialize_project,
    serialize_thought,
)

HUMAN_AGENT_ID = "human"
STREAM_PAGE = 50


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    yield
    await orchestrator.aclose()


app = FastAPI(title="Swarm Mind", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ws_manager = ConnectionManager()
orchestrator = Orchestrator(ws_manager, store=PersistenceStore(engine))


@app.get("/api/state")
def get_state():
    states = [agent.state for agent in orchestrator.agents]
    return {
        **orchestrator.snapshot(),
        "started_at": orchestrator.started_at,
        "max_steps": orchestrator.max_steps,
        "total_tokens": sum(s.tokens_used for s in states),
    }


@app.get("/api/agents")
def list_agents():
    return [serialize_agent_summary(agent.state) for agent in orchestrator.agents]


@app.get("/api/agents/{agent_id}")
def get_agent(agent_id: str):
    agent = orchestrator.get_agent(agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    return serialize_agent_detail(agent.state)


@app.get("/api/pheromones")
def list_pheromones():
    return [serialize_pheromone(p) for p in orchestrator.channel.snapshot()]


@app.get("/api/thoughts")
def list_thoughts(limit: int = STREAM_PAGE):
    stream = list(orchestrator.thought_stream)[-limit:]
    return [serialize_thought(t) for t in reversed(stream)]


@app.get("/api/decisions")
def list_decisions(limit: int = STREAM_PAGE):
    stream = list(orchestrator.decision_stream)[-limit:]
    return [serialize_decision(d) for d in reversed(stream)]


@app.get("/api/collaborations")
def list_collaborations():
    return [serialize_project(p) for p in orchestrator.collaborative_projects]


@app.get("/api/collective")
def list_collective():
    return [serialize_memory(m) for m in orchestrator.collective_memories]


@app.get("/api/repos")
def list_repos():
    states = [agent.state for agent in orchestrator.agents]
    discovered = [repo for agent in orchestrator.agents for repo in agent.discovered_repos]
    return known_repos(states, discovered)


@app.get("/api/report")
def get_report():
    return build_swarm_report(
        [agent.state for agent in orchestrator.agents],
        orchestrator.thought_stream,
        orchestrator.collective_memories,
        step=orchestrator.step,
        phase_transition=orchestrator.channel.phase_transition_occurred,
    )


@app.post("/api/inject")
async def inject_pheromone(payload: PheromoneInject):
    topic = (payload.topic or "").strip()
    text = (payload.content or "").strip() or f"Human injected topic: {topic}"
    pheromone = Pheromone(
        agent_id=HUMAN_AGENT_ID,
        content=text,
        domain=topic or "injected",
        confidence=0.85,
        strength=0.95,
    )
    orchestrator.inject(pheromone)
    serialized = serialize_pheromone(pheromone)
    await ws_manager.broadcast({"type": "pheromone", "pheromone": serialized})
    return {"ok": True, "pheromone": serialized}


@app.post("/api/swarm/start")
async def start_swarm(payload: SwarmStart | None = None):
    payload = payload or SwarmStart()
    if orchestrator.running:
        raise HTTPException(status_code=409, detail="Swarm is already running")
    if orchestrator.step >= (payload.max_steps or orchestrator.max_steps):
        raise HTTPException(status_code=409, detail=f"Swarm already reached step={orchestrator.step}")
    await orchestrator.start(max_steps=payload.max_steps, tick_interval_ms=payload.tick_interval_ms)
    await ws_manager.broadcast({"type": "status", "status": "running", "step": orchestrator.step})
    return {"ok": True, "status": "running", "step": orchestrator.step}


@app.post("/api/swarm/stop")
async def stop_swarm():
    if not orchestrator.running:
        raise HTTPException(status_code=409, detail="Swarm is not running")
    await orchestrator.stop()
    await ws_manager.broadcast({"type": "status", "status": "stopped", "step": orchestrator.step})
    return {"ok": True, "status": "stopped", "step": orchestrator.step}


@app.websocket("/ws/swarm")
async def swarm_ws(websocket: WebSocket):
    await ws_manager.connect(websocket)
    try:
        await websocket.send_json({"type": "snapshot", **orchestrator.snapshot()})
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)
