"""Command-line front end: configure the loop, run it and print the trace."""

from __future__ import annotations

import argparse
import csv
import sys
import time as _time
from collections import deque
from typing import Iterator, Sequence

from .generator import Signal
from .loop import LoopSample
from .manager import Manager
from .storage import Settings, load_settings, save_settings

DEFAULT_STEP = 0.01
DEFAULT_STEPS = 300
DATA_LIMIT = 300
X_WINDOW = 3.0
Y_MARGIN = 0.1
Y_FLOOR = 0.1

COLUMNS = (
    "time",
    "setpoint",
    "measured",
    "error",
    "control",
    "proportional",
    "integral",
    "derivative",
)

_SIGNALS = {
    "step": Signal.STEP,
    "rectangle": Signal.RECTANGLE,
    "sine": Signal.SINE,
}

# Allowed ranges of the editable parameters.
_LIMITS = {
    "gain": (0.01, 9999.0),
    "integral time": (0.0, 9999.0),
    "derivative time": (0.0, 9999.0),
    "start": (0.0, 9999.0),
    "amplitude": (0.0, 9999.0),
    "period": (0.5, 9999.0),
    "duty": (0.01, 0.99),
    "offset": (-9999.9, 9999.9),
    "delay": (1, 9999),
    "noise": (0.0, 9999.0),
    "interval": (1, 9999),
    "coefficient": (-9999.0, 9999.0),
}


def y_axis_range(values: Sequence[float]) -> tuple[float, float]:
    """Return the Y axis range that shows ``values`` with a 10% margin.

    An empty, flat or near-zero series gets the fixed range (-0.1, 0.1).
    """
    values = list(values)
    if not values:
        return (-Y_FLOOR, Y_FLOOR)
    low, high = min(values), max(values)
    if low >= high or (abs(low) < Y_FLOOR and abs(high) < Y_FLOOR):
        return (-Y_FLOOR, Y_FLOOR)
    return (low - Y_MARGIN * abs(low), high + Y_MARGIN * abs(high))


def x_axis_range(time: float) -> tuple[float, float]:
    """Return the X axis range: the first three seconds, then a sliding window."""
    low = time - X_WINDOW if time > X_WINDOW else 0.0
    high = X_WINDOW if time < X_WINDOW else time
    return (low, high)


def run_simulation(
    manager: Manager, steps: int, step: float = DEFAULT_STEP
) -> Iterator[tuple[float, LoopSample]]:
    """Yield ``(time, sample)`` for ``steps`` consecutive steps from time zero."""
    if steps < 0:
        raise ValueError("steps must not be negative")
    if step <= 0:
        raise ValueError("step must be positive")
    now = 0.0
    for _ in range(steps):
        yield now, manager.simulate(now)
        now += step


def _float_list(text: str) -> list[float]:
    try:
        values = [float(item) for item in text.split(",")]
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a comma-separated list of numbers: {text!r}")
    return values


def _host_port(text: str) -> tuple[str, int]:
    host, sep, port = text.rpartition(":")
    if not sep or not host:
        raise argparse.ArgumentTypeError(f"expected HOST:PORT, got {text!r}")
    try:
        return host, int(port)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port in {text!r}") from None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uarsim",
        description="Simulate a PID controller driving an ARX plant.",
    )
    parser.add_argument("--signal", choices=sorted(_SIGNALS), help="setpoint shape")
    pid = parser.add_argument_group("PID controller")
    pid.add_argument("--gain", type=float)
    pid.add_argument("--ti", type=float, help="integral time")
    pid.add_argument("--td", type=float, help="derivative time")
    pid.add_argument(
        "--integral",
        choices=("inside", "before"),
        default="inside",
        help="integral time inside or before the sum",
    )
    gen = parser.add_argument_group("setpoint generator")
    gen.add_argument("--start", type=float, help="step activation time")
    gen.add_argument("--amplitude", type=float)
    gen.add_argument("--period", type=float)
    gen.add_argument("--duty", type=float, help="rectangle fill ratio")
    gen.add_argument("--offset", type=float, help="constant added to the signal")
    arx = parser.add_argument_group("ARX model")
    arx.add_argument("--a", type=_float_list, help="comma-separated A coefficients")
    arx.add_argument("--b", type=_float_list, help="comma-separated B coefficients")
    arx.add_argument("--delay", type=int)
    arx.add_argument("--noise", type=float)
    run = parser.add_argument_group("run")
    run.add_argument("--steps", type=int, default=DEFAULT_STEPS)
    run.add_argument("--step", type=float, default=DEFAULT_STEP, help="time step")
    run.add_argument("--interval", type=int, help="pause between steps in ms")
    run.add_argument("--summary", action="store_true", help="print axis ranges to stderr")
    files = parser.add_argument_group("settings file")
    files.add_argument("--load", metavar="FILE")
    files.add_argument("--save", metavar="FILE")
    net = parser.add_mutually_exclusive_group()
    net.add_argument("--listen", type=int, metavar="PORT", help="run the plant as a server")
    net.add_argument(
        "--connect", type=_host_port, metavar="HOST:PORT", help="run the controller as a client"
    )
    return parser


def _apply_loaded(settings: Settings, loaded: Settings) -> None:
    settings.a = loaded.a
    settings.b = loaded.b
    settings.delay = loaded.delay
    settings.noise = loaded.noise
    if len(loaded.pid) == 3 and len(loaded.generator) == 5:
        settings.pid = loaded.pid
        settings.generator = loaded.generator


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> None:
    for index, value in enumerate((args.gain, args.ti, args.td)):
        if value is not None:
            settings.pid[index] = value
    generator = (args.start, args.amplitude, args.period, args.duty, args.offset)
    for index, value in enumerate(generator):
        if value is not None:
            settings.generator[index] = value
    if args.a is not None:
        settings.a = args.a
    if args.b is not None:
        settings.b = args.b
    if args.delay is not None:
        settings.delay = args.delay
    if args.noise is not None:
        settings.noise = args.noise


def _check_ranges(settings: Settings, args: argparse.Namespace) -> str | None:
    checks = list(zip(("gain", "integral time", "derivative time"), settings.pid))
    checks += zip(("start", "amplitude", "period", "duty", "offset"), settings.generator)
    checks += [("delay", settings.delay), ("noise", settings.noise)]
    checks += [("coefficient", value) for value in (*settings.a, *settings.b)]
    if args.interval is not None:
        checks.append(("interval", args.interval))
    for name, value in checks:
        low, high = _LIMITS[name]
        if not low <= value <= high:
            return f"{name} {value:g} is outside [{low:g}, {high:g}]"
    if len(settings.pid) != 3 or len(settings.generator) != 5:
        return "settings need three PID and five generator parameters"
    if not settings.a or not settings.b:
        return "A and B need at least one coefficient"
    return None


def _fmt(value: float | None) -> str:
    return "" if value is None else f"{value:.6g}"


def _print_summary(window: deque, last_time: float) -> None:
    low, high = x_axis_range(last_time)
    print(f"time: {low:g} .. {high:g}", file=sys.stderr)
    groups = {
        "values": [v for _, s in window for v in (s.setpoint, s.measured) if v is not None],
        "error": [s.error for _, s in window],
        "control": [
            v
            for _, s in window
            for v in (s.control, s.proportional, s.integral, s.derivative)
        ],
    }
    for name, values in groups.items():
        y_low, y_high = y_axis_range(values)
        print(f"{name}: {y_low:g} .. {y_high:g}", file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = Settings()
    if args.load:
        try:
            loaded = load_settings(args.load)
        except FileNotFoundError:
            print(f"error: file does not exist: {args.load}", file=sys.stderr)
            return 1
        except ValueError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
        _apply_loaded(settings, loaded)
    _apply_overrides(settings, args)

    problem = _check_ranges(settings, args)
    if problem:
        parser.error(problem)
    if args.steps < 0:
        parser.error("steps must not be negative")
    if args.step <= 0:
        parser.error("step must be positive")

    if args.save:
        save_settings(args.save, settings)
    if args.signal is None:
        if args.save:
            return 0
        parser.error("no signal shape selected")

    manager = Manager()
    manager.configure_pid(settings.pid)
    manager.set_integral_mode(args.integral == "inside")
    manager.configure_arx(settings.a, settings.b, settings.delay, settings.noise)
    manager.configure_generator(_SIGNALS[args.signal], settings.generator)

    ticking = False
    try:
        if args.listen is not None:
            manager.start_server(args.listen)
            if manager.server_port is None:
                print(f"error: {manager.status}", file=sys.stderr)
                return 1
        elif args.connect is not None:
            manager.connect_to_server(*args.connect)
            if manager.status.startswith("Could not"):
                print(f"error: {manager.status}", file=sys.stderr)
                return 1
            manager.start_ticking()
            ticking = True

        writer = csv.writer(sys.stdout, lineterminator="\n")
        writer.writerow(COLUMNS)
        window: deque = deque(maxlen=DATA_LIMIT)
        last_time = 0.0
        pause = args.interval / 1000 if args.interval else 0.0
        for now, sample in run_simulation(manager, args.steps, args.step):
            writer.writerow(
                [
                    _fmt(now),
                    _fmt(sample.setpoint),
                    _fmt(sample.measured),
                    _fmt(sample.error),
                    _fmt(sample.control),
                    _fmt(sample.proportional),
                    _fmt(sample.integral),
                    _fmt(sample.derivative),
                ]
            )
            window.append((now, sample))
            last_time = now
            if pause:
                _time.sleep(pause)
        if args.summary:
            _print_summary(window, last_time)
    finally:
        if ticking:
            manager.stop_ticking()
        manager.disconnect_client()
        manager.stop_server()
    return 0


if __name__ == "__main__":
    sys.exit(main())