"""Allow running FocusPair as a module: python -m focuspair.

Runs a headless demo: a phone and a watch paired over an in-process link.
The phone runs a short interval workout; every finished unit lands in the
phone's store and is pushed to the watch.  Halfway through, the link drops
for a while and the watch catches up with a full-state pull on reconnect.
"""

import argparse
import sys

from loguru import logger
from PyQt6.QtCore import QCoreApplication, QTimer

from .app import Device
from .database.db import Database
from .log import setup_logging
from .settings import Settings
from .sync.channel import LoopbackChannel
from .timer.phases import Phase


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="focuspair", description=__doc__.splitlines()[0])
    parser.add_argument("--units", type=int, default=4, help="units in the run")
    parser.add_argument("--cycle", type=int, default=3, help="units per long rest")
    parser.add_argument("--active", type=float, default=3.0, help="active seconds")
    parser.add_argument("--rest", type=float, default=1.0, help="short rest seconds")
    parser.add_argument("--long-rest", type=float, default=2.0, help="long rest seconds")
    parser.add_argument("--tick", type=float, default=0.25, help="tick interval")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def _device_settings(args: argparse.Namespace, name: str) -> Settings:
    return Settings(
        variant="workout",
        preset="demo",
        active_duration=args.active,
        short_rest_duration=args.rest,
        long_rest_duration=args.long_rest,
        preparation_duration=1.0,
        cycle_length=args.cycle,
        total_units=args.units,
        tick_interval=args.tick,
        device_name=name,
        database_url="sqlite:///:memory:",
        log_level=args.log_level,
    )


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging(args.log_level)

    app = QCoreApplication(sys.argv)
    app.setApplicationName("FocusPair")

    phone_link, watch_link = LoopbackChannel.pair("phone", "watch")
    phone = Device(
        Database("sqlite:///:memory:"), phone_link, _device_settings(args, "phone")
    )
    watch = Device(
        Database("sqlite:///:memory:"), watch_link, _device_settings(args, "watch"),
        primary=False,
    )
    phone.start()
    watch.start()

    def on_phase(phase: Phase) -> None:
        logger.info(f"[PHONE] phase → {phase.value}")
        if phase == Phase.ACTIVE and phone.engine.state.unit_index == 1:
            logger.info("[DEMO] watch walks out of range")
            phone_link.set_reachable(False)
        elif phase == Phase.ACTIVE and phone.engine.state.unit_index == 2:
            logger.info("[DEMO] watch is back")
            phone_link.set_reachable(True)

    def on_finished() -> None:
        # give the watch's pull a moment to land
        QTimer.singleShot(500, report)

    def report() -> None:
        watch.coordinator.wait_idle()
        for device in (phone, watch):
            store = device.store
            print(
                f"{device.name:>5}: {len(store.sessions)} sessions, "
                f"{store.total_count} units, {store.total_duration:.1f}s active, "
                f"streak {store.streak}"
            )
        phone.shutdown()
        watch.shutdown()
        app.quit()

    phone.engine.phase_changed.connect(on_phase)
    phone.engine.finished.connect(on_finished)
    phone.engine.start()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
