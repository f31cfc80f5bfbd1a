"""Closed-loop simulator: setpoint generator, PID controller and ARX plant, run locally or over TCP."""

__version__ = "0.1.0"
__all__ = ["arx", "cli", "generator", "loop", "manager", "pid", "storage"]