"""Shared pheromone channel: the only state every agent reads and writes.

Density is a saturating function of pheromone count scaled by mean strength.
All mutations go through the channel so strength feedback is accumulated
exactly even when agents run concurrently.
"""

import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Optional

from ..utils import clamp
from .types import Pheromone

logger = logging.getLogger(__name__)

DEFAULT_SATURATION = 20.0
REINFORCE_AMOUNT = 0.1


def compute_density(pheromones: list[Pheromone], saturation: float = DEFAULT_SATURATION) -> float:
    """Return ``(1 - exp(-count / saturation)) * mean_strength`` clamped to [0, 1]."""

    if not pheromones:
        return 0.0
    count = len(pheromones)
    mean_strength = sum(p.strength for p in pheromones) / count
    fill = 1.0 - math.exp(-count / max(saturation, 1e-9))
    return round(clamp(fill * mean_strength), 6)


@dataclass
class PheromoneChannel:
    """Ordered pheromone pool plus the swarm-wide phase-transition flag."""

    pheromones: list[Pheromone] = field(default_factory=list)
    density: float = 0.0
    critical_threshold: float = 0.6
    phase_transition_occurred: bool = False
    transition_step: Optional[int] = None
    saturation: float = DEFAULT_SATURATION
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def refresh_density(self) -> float:
        with self._lock:
            self.density = compute_density(self.pheromones, self.saturation)
            return self.density

    def check_phase_transition(self, step: int) -> bool:
        """Latch the phase transition the first time density crosses the threshold."""

        with self._lock:
            if self.phase_transition_occurred:
                return False
            if self.density < self.critical_threshold:
                return False
            self.phase_transition_occurred = True
            self.transition_step = step
        logger.info(
            "phase transition step=%s density=%.3f threshold=%.3f",
            step,
            self.density,
            self.critical_threshold,
        )
        return True

    def emit(self, pheromone: Pheromone) -> None:
        with self._lock:
            self.pheromones.append(pheromone)

    def reinforce(self, pheromone: Pheromone, amount: float = REINFORCE_AMOUNT) -> float:
        with self._lock:
            pheromone.strength = clamp(pheromone.strength + amount)
            return pheromone.strength

    def decay(self, rate: float) -> None:
        if rate <= 0:
            return
        with self._lock:
            for pheromone in self.pheromones:
                pheromone.strength = clamp(pheromone.strength - rate)

    def snapshot(self) -> list[Pheromone]:
        """Return a stable copy of the pheromone list for iteration."""

        with self._lock:
            return list(self.pheromones)

    def get(self, pheromone_id: str) -> Optional[Pheromone]:
        with self._lock:
            for pheromone in self.pheromones:
                if pheromone.id == pheromone_id:
                    return pheromone
        return None
