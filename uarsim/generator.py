"""Setpoint signal generator for the control loop."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence


class Signal(Enum):
    """Shape of the generated setpoint signal."""

    STEP = "step"
    RECTANGLE = "rectangle"
    SINE = "sine"
    UNSET = "unset"


@dataclass
class SetpointGenerator:
    """Produces the setpoint value for a given moment of simulated time.

    ``start`` is the activation instant of the step, ``amplitude`` the
    amplitude of the rectangle and sine waves, ``period`` their period,
    ``duty`` the rectangle's fill ratio and ``offset`` a constant added
    to the signal.
    """

    kind: Signal = Signal.STEP
    start: float = 0.0
    amplitude: float = 1.0
    period: float = 1.0
    duty: float = 0.5
    offset: float = 0.0

    def generate(self, time: float) -> float:
        """Return the setpoint at ``time``."""
        if self.kind is Signal.STEP:
            return self.offset if time <= self.start else 0.0
        if self.kind is Signal.RECTANGLE:
            phase = math.fmod(time, self.period)
            if phase < self.duty * self.period:
                return self.amplitude + self.offset
            return self.offset
        if self.kind is Signal.SINE:
            phase = math.fmod(time, self.period) / self.period
            return self.amplitude * math.sin(2 * math.pi * phase) + self.offset
        return 0.0

    def configure(self, kind: Signal, params: Sequence[float]) -> None:
        """Set the signal shape and its parameters.

        ``params`` holds, in order: start, amplitude, period, duty, offset.
        """
        try:
            start, amplitude, period, duty, offset = params
        except ValueError:
            raise ValueError(
                "generator takes five parameters: start, amplitude, period, duty, offset"
            ) from None
        self.kind = Signal(kind)
        self.start = float(start)
        self.amplitude = float(amplitude)
        self.period = float(period)
        self.duty = float(duty)
        self.offset = float(offset)