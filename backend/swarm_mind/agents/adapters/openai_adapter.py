"""OpenAI-backed reasoning adapter with strict JSON schema outputs.

Turns agent observations into structured thoughts, generates code changes
and reviews them. Transport errors propagate so the caller can fall back to
the rule adapter; unparseable output degrades to a low-confidence result.
"""

import asyncio
import json
import logging
import re
from typing import Any

from openai import APIConnectionError, APITimeoutError, InternalServerError, OpenAI, RateLimitError

from ...config import settings
from ...utils import clamp
from .base import (
    CodeChange,
    PatchContext,
    PatchResult,
    ReasoningAdapter,
    ReasoningContext,
    ReasoningResult,
    ReviewResult,
    degraded_reasoning,
)

logger = logging.getLogger(__name__)

VALIDATION_ATTEMPTS = 2


class OpenAIReasoningAdapter(ReasoningAdapter):
    """Adapter that calls OpenAI Responses API and normalizes output."""

    _semaphore: asyncio.Semaphore | None = None

    def __init__(self) -> None:
        if not settings.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY is required for AI_MODE=openai")
        self._client = OpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.openai_timeout_ms / 1000,
            max_retries=0,
        )
        if OpenAIReasoningAdapter._semaphore is None:
            OpenAIReasoningAdapter._semaphore = asyncio.Semaphore(max(1, settings.openai_concurrency))

    async def reason(self, ctx: ReasoningContext) -> ReasoningResult:
        prompt = self._build_thought_prompt(ctx)
        payload, tokens, raw = await self._structured_call(
            self._system_prompt(ctx), prompt, self._thought_schema(), max_tokens=800
        )
        if payload is None:
            result = degraded_reasoning(raw)
            result.tokens_used = tokens
            return result
        actions = payload.get("suggested_actions")
        return ReasoningResult(
            reasoning=str(payload.get("reasoning", "")),
            conclusion=str(payload.get("conclusion", "")),
            suggested_actions=[str(a) for a in actions if str(a).strip()] if isinstance(actions, list) else [],
            confidence=self._coerce_unit(payload.get("confidence"), default=0.5),
            tokens_used=tokens,
        )

    async def generate_patch(self, ctx: PatchContext) -> PatchResult:
        prompt = self._build_patch_prompt(ctx)
        payload, tokens, _ = await self._structured_call(
            self._system_prompt(ctx.reasoning), prompt, self._patch_schema(), max_tokens=3000
        )
        if payload is None:
            return PatchResult(changes=[], tokens_used=tokens)
        changes: list[CodeChange] = []
        for item in payload.get("changes") or []:
            if not isinstance(item, dict):
                continue
            changes.append(
                CodeChange(
                    path=str(item.get("path", "")),
                    original=str(item.get("original", "")),
                    modified=str(item.get("modified", "")),
                    explanation=str(item.get("explanation", "")),
                )
            )
        return PatchResult(changes=changes, tokens_used=tokens)

    async def review(self, ctx: PatchContext, changes: list[CodeChange]) -> ReviewResult:
        prompt = self._build_review_prompt(ctx, changes)
        payload, tokens, _ = await self._structured_call(
            self._system_prompt(ctx.reasoning), prompt, self._review_schema(), max_tokens=1500
        )
        if payload is None:
            return ReviewResult(passed=False, issues=["Review parsing failed"], score=3.0, tokens_used=tokens)
        try:
            score = max(0.0, min(10.0, float(payload.get("score", 5))))
        except (TypeError, ValueError):
            score = 5.0
        return ReviewResult(
            passed=bool(payload.get("passed", False)),
            issues=[str(x) for x in payload.get("issues") or []],
            suggestions=[str(x) for x in payload.get("suggestions") or []],
            score=score,
            tokens_used=tokens,
        )

    async def _structured_call(
        self,
        system_prompt: str,
        base_prompt: str,
        text_format: dict[str, Any],
        *,
        max_tokens: int,
    ) -> tuple[dict[str, Any] | None, int, str]:
        tokens = 0
        raw = ""
        last_error: Exception | None = None
        for attempt in range(VALIDATION_ATTEMPTS):
            prompt = base_prompt
            if attempt > 0:
                prompt = self._build_retry_prompt(base_prompt, last_error, attempt)
            response = await self._request_with_retry(system_prompt, prompt, text_format, max_tokens)
            tokens += self._usage_tokens(response)
            raw = self._extract_text(response)
            try:
                return self._coerce_json(raw), tokens, raw
            except (json.JSONDecodeError, RuntimeError, ValueError, TypeError) as exc:
                last_error = exc
        logger.warning(
            "unparseable model output after %s attempts reason=%s",
            VALIDATION_ATTEMPTS,
            f"{type(last_error).__name__}: {str(last_error)[:160]}",
        )
        return None, tokens, raw

    async def _request_with_retry(
        self,
        system_prompt: str,
        prompt: str,
        text_format: dict[str, Any],
        max_tokens: int,
    ) -> Any:
        assert OpenAIReasoningAdapter._semaphore is not None
        attempts = max(1, settings.openai_max_retries)
        last_error: Exception | None = None
        for attempt in range(attempts):
            try:
                async with OpenAIReasoningAdapter._semaphore:
                    return await asyncio.to_thread(
                        self._create_response, system_prompt, prompt, text_format, max_tokens
                    )
            except (RateLimitError, APIConnectionError, APITimeoutError, InternalServerError) as exc:
                last_error = exc
                if attempt == attempts - 1:
                    break
                await asyncio.sleep(min(4.0, 0.5 * (2**attempt)))
        if last_error:
            raise last_error
        raise RuntimeError("OpenAI request failed without explicit error")

    def _create_response(
        self,
        system_prompt: str,
        prompt: str,
        text_format: dict[str, Any],
        max_tokens: int,
    ) -> Any:
        return self._client.responses.create(
            model=settings.openai_model,
            instructions=system_prompt,
            input=prompt,
            max_output_tokens=max(max_tokens, settings.openai_max_output_tokens),
            text={"format": text_format},
        )

    def _build_retry_prompt(self, base_prompt: str, error: Exception | None, attempt: int) -> str:
        reason = "unknown validation error"
        if error is not None:
            reason = f"{type(error).__name__}: {str(error)[:180]}"
        return (
            f"{base_prompt}\n\n"
            "Previous response failed validation and must be corrected.\n"
            f"Retry attempt: {attempt + 1}\n"
            f"Failure reason: {reason}\n"
            "Return only valid JSON conforming to the required schema. Do not include markdown fences."
        )

    def _system_prompt(self, ctx: ReasoningContext) -> str:
        p = ctx.personality
        traits: list[str] = []
        if p.curiosity > 0.7:
            traits.append("deeply curious, loves exploring new codebases")
        elif p.curiosity < 0.3:
            traits.append("focused, prefers depth over breadth")
        if p.diligence > 0.7:
            traits.append("meticulous, writes thorough reviews")
        elif p.diligence < 0.3:
            traits.append("pragmatic, favors speed over perfection")
        if p.boldness > 0.7:
            traits.append("bold, takes on hard problems")
        elif p.boldness < 0.3:
            traits.append("cautious, prefers safe improvements")
        if p.sociability > 0.7:
            traits.append("collaborative, shares discoveries freely")
        elif p.sociability < 0.3:
            traits.append("independent, works alone before sharing")
        return (
            f"You are {ctx.agent_name}, an autonomous software engineering agent in a swarm collective.\n"
            f"Specialization: {ctx.specialization}.\n"
            f"Personality: {'; '.join(traits) or 'balanced across all traits'}.\n"
            f"You have studied {ctx.repos_studied} repositories.\n"
            f"Token budget remaining: {ctx.budget_remaining}.\n"
            "Respond concisely. Focus on actionable engineering insight."
        )

    def _build_thought_prompt(self, ctx: ReasoningContext) -> str:
        return (
            "Form a structured engineering thought.\n"
            f"Trigger: {ctx.trigger}\n"
            f"Observation: {ctx.observation}\n"
            f"Context: {ctx.context}\n"
            "Suggested actions use this vocabulary: 'study owner/repo', 'share_technique: <text>', "
            "'explore_topic: <topic>', 'refactor owner/repo <target>', 'document owner/repo <target>'."
        )

    def _build_patch_prompt(self, ctx: PatchContext) -> str:
        files = "\n\n".join(f"File: {f.path}\n```\n{f.content[:1500]}\n```" for f in ctx.files[:3])
        retry_note = ""
        if ctx.previous_attempt:
            retry_note = f"\nPrevious attempt failed review:\n{ctx.previous_attempt}\nFix the issues.\n"
        return (
            "Generate code changes to accomplish this objective.\n"
            f"Objective: {ctx.objective}\n"
            f"Constraints: {ctx.constraints}\n"
            f"{retry_note}"
            f"Existing files:\n{files or '(none)'}"
        )

    def _build_review_prompt(self, ctx: PatchContext, changes: list[CodeChange]) -> str:
        described = "\n---\n".join(
            f"File: {c.path}\nExplanation: {c.explanation}\n"
            f"--- Original ---\n{c.original[:500]}\n--- Modified ---\n{c.modified[:500]}"
            for c in changes[:3]
        )
        return f"Review these code changes against the objective.\nObjective: {ctx.objective}\nChanges:\n{described}"

    def _thought_schema(self) -> dict[str, Any]:
        return {
            "type": "json_schema",
            "name": "agent_thought",
            "strict": True,
            "schema": {
                "type": "object",
                "properties": {
                    "reasoning": {"type": "string"},
                    "conclusion": {"type": "string"},
                    "suggested_actions": {"type": "array", "items": {"type": "string"}},
                    "confidence": {"type": "number"},
                },
                "required": ["reasoning", "conclusion", "suggested_actions", "confidence"],
                "additionalProperties": False,
            },
        }

    def _patch_schema(self) -> dict[str, Any]:
        return {
            "type": "json_schema",
            "name": "code_changes",
            "strict": True,
            "schema": {
                "type": "object",
                "properties": {
                    "changes": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "path": {"type": "string"},
                                "original": {"type": "string"},
                                "modified": {"type": "string"},
                                "explanation": {"type": "string"},
                            },
                            "required": ["path", "original", "modified", "explanation"],
                            "additionalProperties": False,
                        },
                    },
                },
                "required": ["changes"],
                "additionalProperties": False,
            },
        }

    def _review_schema(self) -> dict[str, Any]:
        return {
            "type": "json_schema",
            "name": "code_review",
            "strict": True,
            "schema": {
                "type": "object",
                "properties": {
                    "passed": {"type": "boolean"},
                    "issues": {"type": "array", "items": {"type": "string"}},
                    "suggestions": {"type": "array", "items": {"type": "string"}},
                    "score": {"type": "number"},
                },
                "required": ["passed", "issues", "suggestions", "score"],
                "additionalProperties": False,
            },
        }

    def _coerce_json(self, text: str) -> dict[str, Any]:
        if not text:
            raise RuntimeError("OpenAI response missing output_text")
        text = self._strip_code_fence(text)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            payload = self._extract_first_json_object(text)
            if payload is None:
                raise
        if not isinstance(payload, dict):
            raise ValueError("model output is not a JSON object")
        return payload

    def _extract_first_json_object(self, text: str) -> dict[str, Any] | None:
        decoder = json.JSONDecoder()
        start = text.find("{")
        while start >= 0:
            try:
                payload, _ = decoder.raw_decode(text, start)
            except json.JSONDecodeError:
                start = text.find("{", start + 1)
                continue
            if isinstance(payload, dict):
                return payload
            start = text.find("{", start + 1)
        return None

    def _coerce_unit(self, value: Any, *, default: float) -> float:
        try:
            return clamp(float(value))
        except (TypeError, ValueError):
            return default

    def _usage_tokens(self, response: Any) -> int:
        usage = getattr(response, "usage", None)
        if usage is None:
            return 0
        return int(getattr(usage, "input_tokens", 0) or 0) + int(getattr(usage, "output_tokens", 0) or 0)

    def _extract_text(self, response: Any) -> str:
        text = getattr(response, "output_text", None)
        if text:
            return text
        output = getattr(response, "output", None) or []
        chunks: list[str] = []
        for item in output:
            content = getattr(item, "content", None) or []
            for part in content:
                part_text = getattr(part, "text", None)
                if part_text:
                    chunks.append(part_text)
        return "\n".join(chunks).strip()

    def _strip_code_fence(self, text: str) -> str:
        fenced = re.match(r"^```(?:json)?\s*(.*?)\s*```$", text, re.DOTALL | re.IGNORECASE)
        if fenced:
            return fenced.group(1).strip()
        return text.strip()
