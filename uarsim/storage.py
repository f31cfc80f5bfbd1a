"""Reading and writing the simulation settings file."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

DEFAULT_PATH = "Dane.txt"


def _format_number(value: float) -> str:
    """Format a number with six significant digits, without trailing zeros."""
    return f"{float(value):g}"


def _to_float(text: str) -> float:
    """Parse a number leniently: anything unreadable counts as zero."""
    try:
        return float(text.strip())
    except ValueError:
        return 0.0


def _to_int(text: str) -> int:
    """Parse an integer leniently: anything unreadable counts as zero."""
    try:
        return int(text.strip())
    except ValueError:
        return 0


def _row(values: Iterable[float]) -> str:
    return ",".join(_format_number(v) for v in values)


def _parse_row(line: str) -> list[float]:
    return [_to_float(item) for item in line.split(",")]


@dataclass
class Settings:
    """Controller, model and generator parameters kept together on disk.

    ``pid`` holds gain, integral time and derivative time; ``generator``
    holds start, amplitude, period, duty and offset.
    """

    pid: list[float] = field(default_factory=lambda: [0.5, 5.0, 0.2])
    a: list[float] = field(default_factory=lambda: [-0.4, 0.0, 0.0])
    b: list[float] = field(default_factory=lambda: [0.6, 0.0, 0.0])
    delay: int = 1
    noise: float = 0.0
    generator: list[float] = field(default_factory=lambda: [1.0, 1.0, 1.0, 0.5, 0.0])


def save_settings(path: str | Path, settings: Settings) -> None:
    """Write ``settings`` as three lines: PID, ``A|B|delay|noise``, generator."""
    model_line = "|".join(
        [
            _row(settings.a),
            _row(settings.b),
            str(int(settings.delay)),
            _format_number(settings.noise),
        ]
    )
    text = "\n".join([_row(settings.pid), model_line, _row(settings.generator)])
    Path(path).write_text(text, encoding="utf-8")


def load_settings(path: str | Path) -> Settings:
    """Read settings written by :func:`save_settings`.

    Raises FileNotFoundError when the file is missing and ValueError when
    the model line does not have its four ``|``-separated fields.
    """
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    lines.extend([""] * (3 - len(lines)))
    pid_line, model_line, generator_line = lines[:3]

    parts = model_line.split("|")
    if len(parts) < 4:
        raise ValueError("model line must have the form 'A|B|delay|noise'")

    return Settings(
        pid=_parse_row(pid_line),
        a=_parse_row(parts[0]),
        b=_parse_row(parts[1]),
        delay=_to_int(parts[2]),
        noise=_to_float(parts[3]),
        generator=_parse_row(generator_line),
    )