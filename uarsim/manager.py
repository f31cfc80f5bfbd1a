"""Coordinates the simulation, the setpoint generator and the network link.

In network mode one side (the server) runs the plant and the other (the
client) runs the controller; they exchange plain-text numbers over TCP.
"""

from __future__ import annotations

import logging
import socket
import threading
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterator, Sequence

from .generator import SetpointGenerator, Signal
from .loop import FeedbackLoop, LoopSample
from .storage import Settings, _format_number, _to_float, _to_int, load_settings, save_settings

log = logging.getLogger(__name__)

STATUS_ON_TIME = "Simulation is keeping up"
STATUS_BEHIND = "Simulation is not keeping up"
DEFAULT_PARAMETERS = "PID=1.0,0.1,0.01;ARX=1.0,0.5,0.1"
TICK_MESSAGE = "Test message from client"
CONNECT_TIMEOUT = 3.0
_BUFFER_SIZE = 4096
_ACCEPT_POLL = 0.2


def lamp_state(status: str) -> tuple[str, str] | None:
    """Return the indicator colour and label for a status, or None to leave it."""
    if "not keeping up" in status:
        return ("red", "State: not keeping up")
    if "keeping up" in status:
        return ("green", "State: keeping up")
    return None


def _receive(sock: socket.socket) -> Iterator[bytes]:
    """Yield chunks from ``sock`` until the peer closes or the socket fails."""
    while True:
        try:
            data = sock.recv(_BUFFER_SIZE)
        except OSError:
            return
        if not data:
            return
        yield data


def _send(sock: socket.socket, text: str) -> None:
    try:
        sock.sendall(text.encode("utf-8"))
    except OSError as exc:
        log.warning("sending failed: %s", exc)


def _close(sock: socket.socket) -> None:
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    sock.close()


def _fields(part: str) -> list[str]:
    """Split a comma list, dropping an optional ``NAME=`` label."""
    if "=" in part:
        part = part.partition("=")[2]
    return part.split(",")


class _Ticker:
    """Calls a function at a fixed interval on a background thread."""

    def __init__(self, interval: float, callback: Callable[[], object]) -> None:
        self.interval = interval
        self.callback = callback
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self.stop()
        stop = threading.Event()
        self._stop = stop

        def run() -> None:
            while not stop.wait(self.interval):
                self.callback()

        self._thread = threading.Thread(target=run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join()


class Manager:
    """Runs the loop locally, or one half of it against a network peer."""

    def __init__(
        self,
        loop: FeedbackLoop | None = None,
        generator: SetpointGenerator | None = None,
        tick_interval: float = 1.0,
    ) -> None:
        self.loop = loop if loop is not None else FeedbackLoop()
        self.generator = generator if generator is not None else SetpointGenerator()
        self.status_listeners: list[Callable[[str], None]] = []
        self.status = ""
        self.data_received = False
        self.server_port: int | None = None
        self._lock = threading.RLock()
        self._sample = LoopSample(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
        self._server: socket.socket | None = None
        self._peer: socket.socket | None = None
        self._client: socket.socket | None = None
        self._ticker = _Ticker(tick_interval, self.tick)

    def _emit(self, status: str) -> None:
        self.status = status
        for listener in list(self.status_listeners):
            listener(status)

    # Server side: runs the plant.

    def start_server(self, port: int) -> None:
        """Listen on all interfaces; port 0 picks a free one."""
        if self._server is not None:
            return
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            server.bind(("", int(port)))
            server.listen()
        except OSError:
            server.close()
            self._emit("Could not start the server!")
            return
        server.settimeout(_ACCEPT_POLL)
        with self._lock:
            self._server = server
            self.server_port = server.getsockname()[1]
        threading.Thread(target=self._accept_loop, args=(server,), daemon=True).start()
        self._emit(f"Server running on port {self.server_port}")

    def _accept_loop(self, server: socket.socket) -> None:
        while True:
            try:
                conn, _ = server.accept()
            except socket.timeout:
                if self._server is not server:
                    return
                continue
            except OSError:
                return
            conn.settimeout(None)
            with self._lock:
                self._peer = conn
            threading.Thread(target=self._serve_peer, args=(conn,), daemon=True).start()
            self._emit("Connected to the controller (client)!")

    def _serve_peer(self, conn: socket.socket) -> None:
        for data in _receive(conn):
            control = _to_float(data.decode("utf-8", errors="replace"))
            log.debug("received control signal %s", control)
            with self._lock:
                self._sample = replace(self._sample, control=control)
                measured = self._sample.measured
                self.data_received = True
            _send(conn, _format_number(measured if measured is not None else 0.0))

    def stop_server(self) -> None:
        with self._lock:
            server, peer = self._server, self._peer
            self._server = None
            self._peer = None
            self.server_port = None
        if server is None:
            return
        server.close()
        if peer is not None:
            _close(peer)
        self._emit("Server stopped.")

    # Client side: runs the controller.

    def connect_to_server(self, address: str, port: int) -> None:
        if self._client is not None:
            return
        try:
            sock = socket.create_connection((address, int(port)), timeout=CONNECT_TIMEOUT)
        except OSError:
            self._emit("Could not connect to the server!")
            return
        sock.settimeout(None)
        with self._lock:
            self._client = sock
        threading.Thread(target=self._serve_server, args=(sock,), daemon=True).start()
        self._emit("Connected to the server!")

    def _serve_server(self, sock: socket.socket) -> None:
        for data in _receive(sock):
            measured = _to_float(data.decode("utf-8", errors="replace"))
            log.debug("received measured value %s", measured)
            with self._lock:
                self._sample = replace(self._sample, measured=measured)
                self.loop.set_measured(self._sample)
                control = self._sample.control
                self.data_received = True
            _send(sock, _format_number(control))
        with self._lock:
            still_current = self._client is sock
        if still_current:
            self._emit("Disconnected from the server.")

    def disconnect_client(self) -> None:
        with self._lock:
            sock = self._client
            self._client = None
        if sock is None:
            return
        _close(sock)
        self._emit("Disconnected from the server.")

    # Messaging.

    def send_message(self, message: str) -> None:
        """Send text to the connected peer, preferring the server's connection."""
        with self._lock:
            target = self._peer if self._peer is not None else self._client
        if target is not None:
            _send(target, message)

    def send_parameters(self) -> None:
        with self._lock:
            client = self._client
        if client is not None:
            _send(client, DEFAULT_PARAMETERS)

    def receive_parameters(self, text: str) -> None:
        """Apply ``gain,Ti,Td;a,b,delay``; each half may carry a ``NAME=`` label."""
        parts = text.split(";")
        if len(parts) < 2:
            raise ValueError("parameters must have the form '<PID gains>;<ARX parameters>'")
        pid_fields = _fields(parts[0])
        arx_fields = _fields(parts[1])
        if len(pid_fields) < 3 or len(arx_fields) < 3:
            raise ValueError("PID and ARX parts each need three values")
        gains = [_to_float(value) for value in pid_fields[:3]]
        a = [_to_float(arx_fields[0])]
        b = [_to_float(arx_fields[1])]
        delay = _to_int(arx_fields[2])
        with self._lock:
            self.loop.configure_pid(gains)
            self.loop.configure_arx(a, b, delay)

    # Ticking.

    def start_ticking(self) -> None:
        self._ticker.start()
        self._emit("One-sided ticking started.")

    def stop_ticking(self) -> None:
        self._ticker.stop()
        self._emit("One-sided ticking stopped.")

    def tick(self) -> bool:
        """Ping the peer and report whether a reply arrived since the last tick."""
        self.send_message(TICK_MESSAGE)
        with self._lock:
            arrived = self.data_received
            self.data_received = False
        self._emit(STATUS_ON_TIME if arrived else STATUS_BEHIND)
        return arrived

    # Simulation.

    def simulate(self, time: float) -> LoopSample:
        """Advance the simulation by one step at ``time``.

        As a client only the controller runs, against the last received
        measurement; as a server only the plant runs, on the last received
        control signal; otherwise the whole loop runs locally.
        """
        setpoint = self.generator.generate(time)
        with self._lock:
            if self._client is not None:
                step = self.loop.controller_step(setpoint)
                self._sample = replace(step, measured=self.loop.measured)
                return self._sample
            if self._server is not None:
                self._sample = self.loop.plant_step(self._sample)
                return self._sample
            return self.loop.simulate(setpoint)

    def configure_generator(self, kind: Signal, params: Sequence[float]) -> None:
        with self._lock:
            self.generator.configure(kind, params)

    def configure_pid(self, gains: Sequence[float]) -> None:
        with self._lock:
            self.loop.configure_pid(gains)

    def set_integral_mode(self, inside: bool) -> None:
        with self._lock:
            self.loop.set_integral_mode(inside)

    def configure_arx(
        self,
        a: Sequence[float],
        b: Sequence[float],
        delay: int,
        noise: float = 0.0,
    ) -> None:
        with self._lock:
            self.loop.configure_arx(a, b, delay, noise)

    def reset_simulation(self) -> None:
        with self._lock:
            self.loop.reset()

    def reset_pid(self) -> None:
        with self._lock:
            self.loop.reset_pid()

    # Persistence.

    def save(self, path: str | Path, settings: Settings) -> None:
        save_settings(path, settings)

    def load(self, path: str | Path) -> Settings:
        return load_settings(path)