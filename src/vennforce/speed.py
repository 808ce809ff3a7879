from __future__ import annotations

from dataclasses import dataclass

from ..utils import debug


@dataclass(frozen=True)
class ConvergenceController:
    """
    Step-size policy of the layout simulation.

    Speed decays multiplicatively on every rejected step, never below
    ``floor``, and is pulled back toward ``initial`` once per run call.
    """

    initial: float = 1.0
    decay: float = 0.5
    floor: float = 1e-3
    recovery: float = 1.0

    def __post_init__(self) -> None:
        if not self.initial > 0:
            raise ValueError("initial speed must be positive")
        if not 0 < self.decay < 1:
            raise ValueError("speed decay must be in (0, 1)")
        if not 0 < self.floor <= self.initial:
            raise ValueError("speed floor must be in (0, initial]")
        if not 0 <= self.recovery <= 1:
            raise ValueError("speed recovery must be in [0, 1]")

    def on_invalid_step(self, speed: float) -> float:
        reduced = max(speed * self.decay, self.floor)
        debug.log(f"speed reduced {speed:.4g} -> {reduced:.4g}")
        return reduced

    def on_fresh_run(self, speed: float) -> float:
        if speed >= self.initial:
            return speed
        recovered = speed + self.recovery * (self.initial - speed)
        debug.log(f"speed recovered {speed:.4g} -> {recovered:.4g}")
        return recovered
