"""Load uhfscan configuration from a TOML file."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from uhfscan.power import DEFAULT_POWER_DBM
from uhfscan.simulated import DEFAULT_TAGS

DEFAULT_CONFIG_PATH = Path("/etc/uhfscan.toml")


@dataclass
class Config:
    """uhfscan configuration."""

    power: int = DEFAULT_POWER_DBM
    log_level: str = "INFO"
    pin_rst: int = 22
    simulated_tags: list[str] = field(default_factory=lambda: list(DEFAULT_TAGS))
    failure_rate: float = 0.0
    round_time: float = 0.05


def load_config(path: Path | str) -> Config:
    """Load configuration from a TOML file.

    Returns a :class:`Config` with defaults for any missing keys.
    If the file does not exist, returns a default :class:`Config`.
    """
    path = Path(path)
    if not path.is_file():
        return Config()

    with open(path, "rb") as f:
        data = tomllib.load(f)

    rc522 = data.get("rc522", {})
    simulator = data.get("simulator", {})
    defaults = Config()

    return Config(
        power=data.get("power", defaults.power),
        log_level=data.get("log-level", defaults.log_level),
        pin_rst=rc522.get("pin-rst", defaults.pin_rst),
        simulated_tags=simulator.get("tags", defaults.simulated_tags),
        failure_rate=simulator.get("failure-rate", defaults.failure_rate),
        round_time=simulator.get("round-time", defaults.round_time),
    )
