# uarsim

A small simulator of a closed control loop: a setpoint generator feeds a PID
controller, which drives a discrete-time ARX plant model. The loop can run
entirely in one process, or be split over TCP so that one process runs the
controller and another runs the plant.

## Installation

```
pip install .
```

For running the tests:

```
pip install .[test]
pytest
```

## Command line

```
uarsim --help
```

`uarsim` configures the loop, runs it for a number of steps starting at time
zero and writes one CSV row per step to standard output, with the columns
`time, setpoint, measured, error, control, proportional, integral, derivative`.

A signal shape must be chosen with `--signal` (`step`, `rectangle` or `sine`),
unless the run only saves settings with `--save`.

| Option | Meaning | Default |
| --- | --- | --- |
| `--gain`, `--ti`, `--td` | PID gain, integral time, derivative time | 0.5, 5.0, 0.2 |
| `--integral inside\|before` | divide each error by the integral time before summing, or divide the sum | `inside` |
| `--start`, `--amplitude`, `--period`, `--duty`, `--offset` | generator parameters | 1, 1, 1, 0.5, 0 |
| `--a`, `--b` | comma-separated ARX coefficients | `-0.4,0,0` and `0.6,0,0` |
| `--delay`, `--noise` | ARX input delay and noise level | 1, 0 |
| `--steps`, `--step` | number of steps and time step | 300, 0.01 |
| `--interval MS` | pause between steps, in milliseconds | none |
| `--summary` | print the X and Y axis ranges of the last 300 samples to standard error | off |
| `--load FILE`, `--save FILE` | read or write a settings file | |
| `--listen PORT` | run as the plant side of a network loop | |
| `--connect HOST:PORT` | run as the controller side of a network loop | |

Values are checked against fixed ranges (for example gain 0.01–9999, period
0.5–9999, duty 0.01–0.99, delay 1–9999); a value outside its range is
reported as a usage error. Options given on the command line override values
read with `--load`.

The generator shapes behave as follows: `step` gives the offset up to and
including the start time and zero afterwards; `rectangle` gives
amplitude + offset for the first `duty` part of each period and the offset
for the rest; `sine` gives `amplitude * sin(2π t / period) + offset`.

## Settings file

`uarsim.storage.save_settings` writes a `Settings` object as three lines of
text:

```
0.5,5,0.2
-0.4,0,0|0.6,0,0|1|0
1,1,1,0.5,0
```

— PID gains; `A|B|delay|noise`; generator parameters. `load_settings` reads
it back, raising `FileNotFoundError` for a missing file and `ValueError` when
the model line lacks its four fields. Unreadable numbers are read as zero.

## Library use

- `uarsim.generator` – `Signal` and `SetpointGenerator`.
- `uarsim.pid` – `PIDController`, whose `step` returns a `PIDOutput` with the
  proportional, integral and derivative parts and their sum.
- `uarsim.arx` – `ARXModel`, an ARX plant with input delay and optional
  Gaussian noise (mean `-noise`, standard deviation `noise`).
- `uarsim.loop` – `FeedbackLoop`, tying a controller and a plant together;
  each step yields a `LoopSample`.
- `uarsim.storage` – `Settings`, `save_settings` and `load_settings`.
- `uarsim.manager` – `Manager`, which owns the loop and generator and handles
  the TCP server and client modes, and `lamp_state`, which maps a status text
  to an indicator colour and label.
- `uarsim.cli` – `main`, plus the helpers `run_simulation`, `x_axis_range` and
  `y_axis_range`.

```python
from uarsim.arx import ARXModel

model = ARXModel([-0.4], [0.6], 1)
outputs = [model.simulate(0.0 if k == 0 else 1.0) for k in range(6)]
# 0, 0, 0.6, 0.84, 0.936, 0.9744
```

```python
from uarsim.manager import Manager
from uarsim.generator import Signal

manager = Manager()
manager.configure_pid([0.5, 5.0, 0.2])
manager.configure_arx([-0.4], [0.6], 1, 0.0)
manager.configure_generator(Signal.STEP, [1.0, 1.0, 1.0, 0.5, 1.0])
sample = manager.simulate(0.0)
```

## Network mode

One process calls `Manager.start_server(port)` (port 0 picks a free one, shown
in `server_port`) and acts as the plant: `simulate` runs only the ARX model on
the last control value received. Another calls
`Manager.connect_to_server(address, port)` and acts as the controller:
`simulate` runs only the PID controller against the last measured value
received. Each side answers every message it receives with its own latest
value, written as plain decimal text. `start_ticking` sends a fixed text
message to the peer once per tick interval (one second by default) and
reports through the status listeners whether a reply arrived since the last
tick.

## What it does not do

There is no graphical window: the loop's trace is written as CSV and the plot
axis ranges can only be printed with `--summary`. Parameters are set once per
run on the command line or from a settings file, not edited while the loop
runs.