from __future__ import annotations

import json
from pathlib import Path

from juno_host.settings import DEFAULT_HOTKEY, HostSettings, resolve_data_dir


def test_defaults_when_file_missing(tmp_path) -> None:
    settings = HostSettings(tmp_path)

    assert settings.hotkey == DEFAULT_HOTKEY
    assert settings.log_retention == 5
    assert settings.reminder_poll_seconds == 60
    assert settings.launch_ui is True
    assert settings.ui_command == []


def test_bad_values_are_coerced(tmp_path) -> None:
    (tmp_path / "settings.json").write_text(
        json.dumps(
            {
                "hotkey": "   ",
                "log_retention": 99,
                "reminder_poll_seconds": "soon",
                "launch_ui": 0,
                "ui_command": ["python", 3],
            }
        ),
        encoding="utf-8",
    )

    settings = HostSettings(tmp_path)

    assert settings.hotkey == DEFAULT_HOTKEY
    assert settings.log_retention == 20
    assert settings.reminder_poll_seconds == 60
    assert settings.launch_ui is False
    assert settings.ui_command == []


def test_poll_interval_has_a_floor(tmp_path) -> None:
    (tmp_path / "settings.json").write_text(json.dumps({"reminder_poll_seconds": 1}), encoding="utf-8")

    assert HostSettings(tmp_path).reminder_poll_seconds == 5


def test_save_round_trip(tmp_path) -> None:
    settings = HostSettings(tmp_path)
    settings.hotkey = "<alt>+j"
    settings.ui_command = ["juno-ui", "--debug"]
    settings.save()

    reloaded = HostSettings(tmp_path)

    assert reloaded.hotkey == "<alt>+j"
    assert reloaded.ui_command == ["juno-ui", "--debug"]


def test_data_dir_resolution_order(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("JUNO_DATA_DIR", str(tmp_path / "env"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))

    assert resolve_data_dir(str(tmp_path / "cli")) == tmp_path / "cli"
    assert resolve_data_dir() == tmp_path / "env"

    monkeypatch.delenv("JUNO_DATA_DIR")
    monkeypatch.setattr("juno_host.settings.sys.platform", "linux")
    assert resolve_data_dir() == Path(tmp_path / "xdg") / "Juno"
