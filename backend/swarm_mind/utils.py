"""Small shared utility helpers used across backend modules."""

import hashlib
import time


def now_ms() -> int:
    return int(time.time() * 1000)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def attestation_hash(content: str) -> str:
    """SHA-256 hex digest used to attest pheromones and collective memories."""

    return hashlib.sha256(content.encode("utf-8")).hexdigest()
