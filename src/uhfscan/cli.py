"""Command line front end: scan continuously and print tag and state events."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import time
from typing import Any

from uhfscan.config import DEFAULT_CONFIG_PATH, Config, load_config
from uhfscan.gateway import DeviceGateway
from uhfscan.reader import UhfReader

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _build_gateway(cfg: Config, simulate: bool) -> DeviceGateway:
    if simulate:
        from uhfscan.simulated import SimulatedGateway

        return SimulatedGateway(
            cfg.simulated_tags,
            failure_rate=cfg.failure_rate,
            round_time=cfg.round_time,
        )

    from uhfscan.rfid import Rc522Gateway

    return Rc522Gateway(pin_rst=cfg.pin_rst)


def _print_tag(message: dict[str, Any]) -> None:
    extras = "".join(
        f"  {key}: {message[key]}"
        for key in ("rssi", "antennaId", "frequencyKHz")
        if key in message
    )
    print(f"  EPC: {message['epc']}{extras}")


def _print_state(state: str) -> None:
    print(f"  [{state}]")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="uhfscan – continuous UHF RFID inventory",
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help=f"Path to TOML config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--power",
        type=int,
        default=None,
        help="Transmit power in dBm",
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use a simulated reader instead of the RC522 hardware",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: INFO)",
    )
    args = parser.parse_args(argv)

    # Load config file (silently skip if not found)
    cfg = load_config(args.config)

    # CLI flags override config values (only when explicitly provided)
    power = args.power if args.power is not None else cfg.power
    log_level = args.log_level if args.log_level is not None else cfg.log_level

    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)

    reader = UhfReader(_build_gateway(cfg, args.simulate), default_power=power)
    reader.events.subscribe_tags(_print_tag)
    reader.events.subscribe_state(_print_state)

    if not reader.init():
        reader.events.check_events()
        print("Reader initialization failed.")
        reader.dispose()
        sys.exit(1)

    print(f"Power: {reader.get_power()} dBm")
    print("uhfscan – scanning (Ctrl+C to stop)")
    reader.start_inventory()

    stop = False

    def _handle_signal(signum: int, frame: object) -> None:
        nonlocal stop
        stop = True

    signal.signal(signal.SIGTERM, _handle_signal)
    try:
        while not stop:
            reader.events.check_events()
            time.sleep(0.1)
    except KeyboardInterrupt:
        print()
    finally:
        reader.stop_inventory()
        reader.dispose()
        reader.events.check_events()


if __name__ == "__main__":
    main()
