import socket
import time

import pytest

from uarsim.arx import ARXModel
from uarsim.generator import SetpointGenerator, Signal
from uarsim.loop import FeedbackLoop
from uarsim.manager import (
    DEFAULT_PARAMETERS,
    STATUS_BEHIND,
    STATUS_ON_TIME,
    Manager,
    lamp_state,
)
from uarsim.storage import Settings


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def make_loop():
    return FeedbackLoop([-0.4], [0.6], 1, 0.5, 5.0, 0.2)


def make_generator():
    return SetpointGenerator(kind=Signal.RECTANGLE, amplitude=2.0, period=1.0, duty=0.5)


def test_local_simulation_matches_feedback_loop():
    manager = Manager(loop=make_loop(), generator=make_generator())
    reference = make_loop()
    generator = make_generator()
    for k in range(40):
        t = k * 0.1
        got = manager.simulate(t)
        expected = reference.simulate(generator.generate(t))
        assert got == expected


def test_reset_simulation_restores_initial_behaviour():
    manager = Manager(loop=make_loop(), generator=make_generator())
    first = manager.simulate(0.0)
    for k in range(1, 10):
        manager.simulate(k * 0.1)
    manager.reset_simulation()
    assert manager.simulate(0.0) == first


def test_configure_generator_changes_setpoint():
    manager = Manager(loop=make_loop())
    manager.configure_generator(Signal.RECTANGLE, [0.0, 3.0, 2.0, 0.5, 1.0])
    assert manager.simulate(0.0).setpoint == manager.generator.generate(0.0)
    assert manager.generator.amplitude == 3.0
    assert manager.generator.offset == 1.0


def test_configure_pid_and_integral_mode():
    manager = Manager()
    manager.configure_pid([2.0, 4.0, 0.5])
    manager.set_integral_mode(False)
    assert manager.loop.pid.gain == 2.0
    assert manager.loop.pid.integral_time == 4.0
    assert manager.loop.pid.derivative_time == 0.5
    assert manager.loop.pid.integral_inside is False


def test_configure_arx_delegates_to_model():
    manager = Manager()
    manager.configure_arx([-0.4, 0.2], [0.6, 0.3], 2, 0.0)
    assert manager.loop.model.a == [-0.4, 0.2]
    assert manager.loop.model.b == [0.6, 0.3]
    assert manager.loop.model.delay == 2


def test_receive_parameters_plain():
    manager = Manager()
    manager.receive_parameters("1.5,0.1,0.01;-0.7,0.5,2")
    assert manager.loop.pid.gain == 1.5
    assert manager.loop.pid.integral_time == 0.1
    assert manager.loop.pid.derivative_time == 0.01
    assert manager.loop.model.a == [-0.7]
    assert manager.loop.model.b == [0.5]
    assert manager.loop.model.delay == 2


def test_receive_parameters_accepts_labelled_default():
    manager = Manager()
    manager.receive_parameters(DEFAULT_PARAMETERS)
    assert manager.loop.pid.gain == 1.0
    assert manager.loop.pid.integral_time == 0.1
    assert manager.loop.model.b == [0.5]
    assert manager.loop.model.delay == 0


@pytest.mark.parametrize("text", ["1,2,3", "1,2;3,4,5", "1,2,3;4"])
def test_receive_parameters_rejects_malformed(text):
    with pytest.raises(ValueError):
        Manager().receive_parameters(text)


@pytest.mark.parametrize(
    "status, colour",
    [(STATUS_BEHIND, "red"), (STATUS_ON_TIME, "green")],
)
def test_lamp_state_colours(status, colour):
    assert lamp_state(status)[0] == colour


def test_lamp_state_ignores_other_status():
    assert lamp_state("Server stopped.") is None


def test_tick_without_data_reports_behind():
    manager = Manager()
    statuses = []
    manager.status_listeners.append(statuses.append)
    assert manager.tick() is False
    assert statuses == [STATUS_BEHIND]
    assert manager.status == STATUS_BEHIND


def test_stop_server_without_server_does_nothing():
    manager = Manager()
    manager.stop_server()
    manager.disconnect_client()
    assert manager.status == ""


def test_save_and_load_round_trip(tmp_path):
    manager = Manager()
    settings = Settings(pid=[1.0, 2.0, 3.0], delay=4, noise=0.5)
    path = tmp_path / "settings.txt"
    manager.save(path, settings)
    assert manager.load(path) == settings


def test_ticking_runs_and_stops():
    manager = Manager(tick_interval=0.01)
    statuses = []
    manager.status_listeners.append(statuses.append)
    manager.start_ticking()
    try:
        assert wait_for(lambda: STATUS_BEHIND in statuses)
    finally:
        manager.stop_ticking()
    count = statuses.count(STATUS_BEHIND)
    time.sleep(0.05)
    assert statuses.count(STATUS_BEHIND) == count


def test_server_answers_control_with_measured_value():
    manager = Manager(loop=FeedbackLoop([-0.4], [0.6], 0))
    manager.start_server(0)
    try:
        port = manager.server_port
        assert port > 0
        with socket.create_connection(("127.0.0.1", port), timeout=2) as peer:
            peer.sendall(b"2.5")
            assert float(peer.recv(64)) == 0.0
            assert manager.data_received is True

            sample = manager.simulate(0.0)
            assert sample.control == 2.5
            assert sample.measured == pytest.approx(ARXModel([-0.4], [0.6], 0).simulate(2.5))

            peer.sendall(b"1")
            assert float(peer.recv(64)) == pytest.approx(sample.measured, rel=1e-5)
            assert manager.tick() is True
    finally:
        manager.stop_server()
    assert manager.server_port is None


def test_start_server_twice_keeps_port():
    manager = Manager()
    manager.start_server(0)
    try:
        port = manager.server_port
        manager.start_server(0)
        assert manager.server_port == port
    finally:
        manager.stop_server()


def test_server_send_message_reaches_peer():
    manager = Manager()
    statuses = []
    manager.status_listeners.append(statuses.append)
    manager.start_server(0)
    try:
        with socket.create_connection(("127.0.0.1", manager.server_port), timeout=2) as peer:
            assert wait_for(lambda: "Connected to the controller (client)!" in statuses)
            manager.send_message("hello")
            assert peer.recv(64) == b"hello"
    finally:
        manager.stop_server()


def test_client_exchanges_control_for_measurement():
    with socket.create_server(("127.0.0.1", 0)) as listener:
        port = listener.getsockname()[1]
        manager = Manager(loop=FeedbackLoop(gain=2.0), generator=make_generator())
        statuses = []
        manager.status_listeners.append(statuses.append)
        manager.connect_to_server("127.0.0.1", port)
        try:
            conn, _ = listener.accept()
            with conn:
                conn.settimeout(2)
                sample = manager.simulate(0.0)
                reference = FeedbackLoop(gain=2.0).controller_step(make_generator().generate(0.0))
                assert sample.control == pytest.approx(reference.control)

                conn.sendall(b"1.5")
                assert float(conn.recv(64)) == pytest.approx(sample.control, rel=1e-5)
                assert manager.loop.measured == 1.5

                manager.send_parameters()
                assert conn.recv(64).decode() == DEFAULT_PARAMETERS
        finally:
            manager.disconnect_client()
    assert "Connected to the server!" in statuses
    assert manager.status == "Disconnected from the server."


def test_failed_connection_reports_status():
    with socket.create_server(("127.0.0.1", 0)) as probe:
        port = probe.getsockname()[1]
    manager = Manager()
    manager.connect_to_server("127.0.0.1", port)
    assert manager.status == "Could not connect to the server!"
    local = manager.simulate(0.0)
    assert local.measured is not None and local.control == 0.0