import pytest

from uarsim.storage import Settings, load_settings, save_settings


def test_default_settings_file_layout(tmp_path):
    path = tmp_path / "settings.txt"
    save_settings(path, Settings())
    assert path.read_text(encoding="utf-8") == (
        "0.5,5,0.2\n-0.4,0,0|0.6,0,0|1|0\n1,1,1,0.5,0"
    )


def test_round_trip(tmp_path):
    path = tmp_path / "settings.txt"
    settings = Settings(
        pid=[1.25, 0.0, 3.5],
        a=[-0.4, 0.2, 0.0],
        b=[0.6, 0.3, -1.0],
        delay=3,
        noise=0.05,
        generator=[2.0, 4.0, 0.75, 0.25, -1.5],
    )
    save_settings(path, settings)
    assert load_settings(path) == settings


def test_round_trip_keeps_six_significant_digits(tmp_path):
    path = tmp_path / "settings.txt"
    settings = Settings(pid=[1 / 3, 2 / 3, 1 / 7])
    save_settings(path, settings)
    loaded = load_settings(path)
    assert loaded.pid == pytest.approx(settings.pid, rel=1e-5)
    assert loaded.a == settings.a


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "absent.txt")


def test_model_line_without_fields_raises(tmp_path):
    path = tmp_path / "settings.txt"
    path.write_text("1,2,3\n1,2,3\n1,2,3,4,5", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(path)


def test_file_with_only_pid_line_raises(tmp_path):
    path = tmp_path / "settings.txt"
    path.write_text("1,2,3\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(path)


def test_unreadable_numbers_count_as_zero(tmp_path):
    path = tmp_path / "settings.txt"
    path.write_text("x,1,2\n1|2|abc|y\n1,2,3,4,5", encoding="utf-8")
    loaded = load_settings(path)
    assert loaded.pid == [0.0, 1.0, 2.0]
    assert loaded.a == [1.0]
    assert loaded.b == [2.0]
    assert loaded.delay == 0
    assert loaded.noise == 0.0
    assert loaded.generator == [1.0, 2.0, 3.0, 4.0, 5.0]


def test_default_lists_are_independent():
    first = Settings()
    second = Settings()
    first.pid.append(9.0)
    assert len(second.pid) == 3