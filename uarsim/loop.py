"""Closed control loop: PID controller driving an ARX plant."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

from .arx import ARXModel
from .pid import PIDController


@dataclass(frozen=True)
class LoopSample:
    """Values of one loop step; ``measured`` is None until the plant has run."""

    setpoint: float
    error: float
    proportional: float
    integral: float
    derivative: float
    control: float
    measured: float | None = None


class FeedbackLoop:
    """Unity feedback loop of a PID controller and an ARX model."""

    def __init__(
        self,
        a: Sequence[float] = (0.0,),
        b: Sequence[float] = (0.0,),
        delay: int = 0,
        gain: float = 0.0,
        integral_time: float = 0.0,
        derivative_time: float = 0.0,
    ) -> None:
        self.pid = PIDController(gain, integral_time, derivative_time)
        self.model = ARXModel(a, b, delay)
        self.measured = 0.0

    def controller_step(self, setpoint: float) -> LoopSample:
        """Run the controller against the last measured value only."""
        error = setpoint - self.measured
        out = self.pid.step(error)
        return LoopSample(
            setpoint=setpoint,
            error=error,
            proportional=out.proportional,
            integral=out.integral,
            derivative=out.derivative,
            control=out.total,
        )

    def plant_step(self, sample: LoopSample) -> LoopSample:
        """Feed the sample's control signal to the plant and record the output."""
        self.measured = self.model.simulate(sample.control)
        return replace(sample, measured=self.measured)

    def simulate(self, setpoint: float) -> LoopSample:
        """Run one full loop step: controller, then plant."""
        return self.plant_step(self.controller_step(setpoint))

    def set_measured(self, sample: LoopSample) -> None:
        """Take the measured value from a sample produced elsewhere."""
        if sample.measured is None:
            raise ValueError("sample carries no measured value")
        self.measured = sample.measured

    def set_integral_mode(self, inside: bool) -> None:
        self.pid.integral_inside = bool(inside)

    def configure_pid(self, gains: Sequence[float]) -> None:
        self.pid.configure(gains)

    def configure_arx(
        self,
        a: Sequence[float],
        b: Sequence[float],
        delay: int = 0,
        noise: float = 0.0,
    ) -> None:
        self.model.configure(a, b, delay, noise)

    def reset(self) -> None:
        """Return the whole loop to its initial state."""
        self.measured = 0.0
        self.pid.reset()
        self.model.reset()

    def reset_pid(self) -> None:
        self.pid.reset()