"""Discrete ARX plant model."""

from __future__ import annotations

import random
from collections import deque
from typing import Sequence


def _resized(queue: deque, size: int) -> deque:
    """Keep the front ``size`` items, padding the back with zeros."""
    items = list(queue)[:size]
    items.extend([0.0] * (size - len(items)))
    return deque(items)


class ARXModel:
    """ARX model: y = sum(b_i * u[k-delay-i]) - sum(a_i * y[k-1-i]) + noise.

    When ``noise`` is non-zero, a Gaussian sample with mean ``-noise`` and
    standard deviation ``noise`` is added to each output.
    """

    def __init__(
        self,
        a: Sequence[float],
        b: Sequence[float],
        delay: int = 1,
        noise: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        self._check_delay(delay)
        self.a = [float(x) for x in a]
        self.b = [float(x) for x in b]
        self.delay = int(delay)
        self.noise = float(noise)
        self._rng = rng if rng is not None else random.Random()
        self._inputs: deque = deque([0.0] * (len(self.b) + self.delay))
        self._outputs: deque = deque([0.0] * len(self.a))

    @staticmethod
    def _check_delay(delay: int) -> None:
        if delay < 0:
            raise ValueError("delay must not be negative")

    def simulate(self, u: float) -> float:
        """Feed one input sample and return the next output."""
        self._inputs.appendleft(float(u))
        self._inputs.pop()

        y = sum(coef * self._inputs[i + self.delay] for i, coef in enumerate(self.b))
        y -= sum(coef * past for coef, past in zip(self.a, self._outputs))
        if self.noise != 0:
            y += self._rng.gauss(-self.noise, self.noise)

        self._outputs.appendleft(y)
        self._outputs.pop()
        return y

    def configure(
        self,
        a: Sequence[float],
        b: Sequence[float],
        delay: int = 0,
        noise: float = 0.0,
    ) -> None:
        """Replace the coefficients, keeping as much history as still fits."""
        self._check_delay(delay)
        self.a = [float(x) for x in a]
        self.b = [float(x) for x in b]
        self.delay = int(delay)
        self.noise = float(noise)
        self._inputs = _resized(self._inputs, len(self.b) + self.delay)
        self._outputs = _resized(self._outputs, len(self.a))

    def reset(self) -> None:
        """Clear the input and output history."""
        self._inputs = deque([0.0] * len(self._inputs))
        self._outputs = deque([0.0] * len(self._outputs))