"""Discrete PID controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class PIDOutput:
    """The parts of one controller output and their sum."""

    proportional: float
    integral: float
    derivative: float
    total: float


class PIDController:
    """PID controller with the integral time inside or before the sum.

    With ``integral_inside`` true each error is divided by the integral time
    before being accumulated; otherwise the accumulated sum is divided.
    An integral time of zero switches the integral part off.
    """

    def __init__(
        self,
        gain: float,
        integral_time: float = 0.0,
        derivative_time: float = 0.0,
    ) -> None:
        self.gain = float(gain)
        self.integral_time = float(integral_time)
        self.derivative_time = float(derivative_time)
        self.integral_inside = True
        self._error_sum = 0.0
        self._last_error = 0.0

    def step(self, error: float) -> PIDOutput:
        """Process one error sample and return the control output."""
        proportional = self.gain * error
        integral = 0.0
        if self.integral_time != 0.0:
            if self.integral_inside:
                self._error_sum += error / self.integral_time
                integral = self._error_sum
            else:
                self._error_sum += error
                integral = self._error_sum / self.integral_time
        derivative = self.derivative_time * (error - self._last_error)
        self._last_error = error
        return PIDOutput(
            proportional, integral, derivative, proportional + integral + derivative
        )

    def reset(self) -> None:
        """Clear the accumulated integral and the remembered error."""
        self._error_sum = 0.0
        self._last_error = 0.0

    def configure(self, gains: Sequence[float]) -> None:
        """Set gain, integral time and derivative time, in that order."""
        try:
            gain, integral_time, derivative_time = gains
        except ValueError:
            raise ValueError(
                "PID takes three parameters: gain, integral time, derivative time"
            ) from None
        self.gain = float(gain)
        self.integral_time = float(integral_time)
        self.derivative_time = float(derivative_time)