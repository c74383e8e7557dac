"""Pydantic request schemas for the dashboard API."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PheromoneInject(BaseModel):
    model_config = ConfigDict(extra="forbid")

    topic: Optional[str] = Field(default=None, max_length=200)
    content: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _require_topic_or_content(self) -> "PheromoneInject":
        if not (self.topic or "").strip() and not (self.content or "").strip():
            raise ValueError("topic or content is required")
        return self


class SwarmStart(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_steps: Optional[int] = Field(default=None, ge=1, le=10000)
    tick_interval_ms: Optional[int] = Field(default=None, ge=10, le=60000)
