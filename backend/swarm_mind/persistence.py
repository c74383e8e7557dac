"""Best-effort storage of agent thoughts and decisions.

Writes never raise: a failing database is logged and the swarm keeps
running on in-memory state.
"""

import logging
from dataclasses import asdict
from typing import Any, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .agents.types import AgentDecision, AgentThought, DecisionResult, DecisionStatus, action_payload
from .models import DecisionRecord, ThoughtRecord
from .utils import now_ms

logger = logging.getLogger(__name__)

_STORE_ERRORS = (SQLAlchemyError, TypeError, ValueError)


def _result_payload(result: Optional[DecisionResult]) -> Optional[dict[str, Any]]:
    if result is None:
        return None
    return asdict(result)


class PersistenceStore:
    """Session-per-call repository over the shared engine."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def save_thought(self, thought: AgentThought) -> bool:
        record = ThoughtRecord(
            id=thought.id,
            agent_id=thought.agent_id,
            trigger=thought.trigger,
            observation=thought.observation,
            reasoning=thought.reasoning,
            conclusion=thought.conclusion,
            suggested_actions=list(thought.suggested_actions),
            confidence=thought.confidence,
            timestamp=thought.timestamp,
        )
        return self._write(record, "thought", thought.id)

    def save_decision(self, decision: AgentDecision) -> bool:
        record = DecisionRecord(
            id=decision.id,
            agent_id=decision.agent_id,
            action_type=decision.action.kind.value,
            action=action_payload(decision.action),
            priority=decision.priority,
            estimated_tokens=decision.cost.estimated_tokens,
            risk_level=decision.cost.risk_level.value,
            status=decision.status.value,
            result=_result_payload(decision.result),
            attempts=decision.attempts,
            created_at=decision.created_at,
            completed_at=decision.completed_at,
        )
        return self._write(record, "decision", decision.id)

    def update_decision_status(
        self,
        decision_id: str,
        status: DecisionStatus,
        result: Optional[DecisionResult] = None,
    ) -> bool:
        try:
            with Session(self.engine) as session:
                record = session.get(DecisionRecord, decision_id)
                if record is None:
                    logger.warning("decision not persisted id=%s status=%s", decision_id, status.value)
                    return False
                record.status = status.value
                if result is not None:
                    record.result = _result_payload(result)
                if status in {DecisionStatus.completed, DecisionStatus.failed}:
                    record.completed_at = now_ms()
                session.add(record)
                session.commit()
            return True
        except _STORE_ERRORS as exc:
            logger.warning(
                "persistence update failed id=%s reason=%s",
                decision_id,
                f"{type(exc).__name__}: {str(exc)[:160]}",
            )
            return False

    def recent_thoughts(self, limit: int = 50, agent_id: Optional[str] = None) -> list[ThoughtRecord]:
        stmt = select(ThoughtRecord)
        if agent_id:
            stmt = stmt.where(ThoughtRecord.agent_id == agent_id)
        stmt = stmt.order_by(ThoughtRecord.timestamp.desc()).limit(limit)
        return self._read(stmt, "thoughts")

    def recent_decisions(self, limit: int = 50, agent_id: Optional[str] = None) -> list[DecisionRecord]:
        stmt = select(DecisionRecord)
        if agent_id:
            stmt = stmt.where(DecisionRecord.agent_id == agent_id)
        stmt = stmt.order_by(DecisionRecord.created_at.desc()).limit(limit)
        return self._read(stmt, "decisions")

    def _write(self, record: Any, kind: str, record_id: str) -> bool:
        try:
            with Session(self.engine) as session:
                session.merge(record)
                session.commit()
            return True
        except _STORE_ERRORS as exc:
            logger.warning(
                "persistence write failed kind=%s id=%s reason=%s",
                kind,
                record_id,
                f"{type(exc).__name__}: {str(exc)[:160]}",
            )
            return False

    def _read(self, stmt: Any, kind: str) -> list[Any]:
        try:
            with Session(self.engine) as session:
                return list(session.exec(stmt).all())
        except _STORE_ERRORS as exc:
            logger.warning(
                "persistence read failed kind=%s reason=%s",
                kind,
                f"{type(exc).__name__}: {str(exc)[:160]}",
            )
            return []
