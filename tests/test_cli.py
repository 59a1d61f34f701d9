"""Tests for the uhfscan command line."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from uhfscan.cli import main


@pytest.fixture()
def no_config(tmp_path):
    return ["--config", str(tmp_path / "missing.toml")]


def test_simulated_scan_until_interrupted(no_config, capsys):
    with patch("uhfscan.cli.time.sleep", side_effect=KeyboardInterrupt):
        main([*no_config, "--simulate"])
    out = capsys.readouterr().out
    assert "Power: 26 dBm" in out
    assert "[initializing]" in out
    assert "[scanning]" in out
    assert out.rstrip().endswith("[disposed]")


def test_power_flag_overrides_config(tmp_path, capsys):
    config = tmp_path / "uhfscan.toml"
    config.write_text("power = 20\n")
    with patch("uhfscan.cli.time.sleep", side_effect=KeyboardInterrupt):
        main(["--config", str(config), "--simulate", "--power", "12"])
    assert "Power: 12 dBm" in capsys.readouterr().out


def test_power_from_config(tmp_path, capsys):
    config = tmp_path / "uhfscan.toml"
    config.write_text("power = 20\n")
    with patch("uhfscan.cli.time.sleep", side_effect=KeyboardInterrupt):
        main(["--config", str(config), "--simulate"])
    assert "Power: 20 dBm" in capsys.readouterr().out


def test_init_failure_exits(no_config, capsys):
    with patch("uhfscan.simulated.SimulatedGateway.init", return_value=False):
        with pytest.raises(SystemExit) as exc_info:
            main([*no_config, "--simulate"])
    assert exc_info.value.code == 1
    out = capsys.readouterr().out
    assert "[error]" in out
    assert "Reader initialization failed." in out
