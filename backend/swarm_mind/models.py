from typing import Any, Optional

from sqlmodel import Field, JSON, SQLModel


class ThoughtRecord(SQLModel, table=True):
    id: str = Field(primary_key=True)
    agent_id: str = Field(index=True)
    trigger: str
    observation: str = ""
    reasoning: str = ""
    conclusion: str = ""
    suggested_actions: list[str] = Field(default_factory=list, sa_type=JSON)
    confidence: float = Field(default=0.5)
    timestamp: int = Field(default=0, index=True)


class DecisionRecord(SQLModel, table=True):
    id: str = Field(primary_key=True)
    agent_id: str = Field(index=True)
    action_type: str = Field(index=True)
    action: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    priority: float = Field(default=0.0)
    estimated_tokens: int = Field(default=0)
    risk_level: str = Field(default="low")
    status: str = Field(default="pending", index=True)
    result: Optional[dict[str, Any]] = Field(default=None, sa_type=JSON)
    attempts: int = Field(default=0)
    created_at: int = Field(default=0, index=True)
    completed_at: Optional[int] = None
