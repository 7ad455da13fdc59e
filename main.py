#!/usr/bin/env python3
"""
Entry point for the path monitor. Loads config, starts the diagnostics engine
and logs one status line per update until interrupted.
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from dataclasses import replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from pathmon.autostart import AutoStarter
from pathmon.bus import Event, EventBus
from pathmon.config_loader import SettingsStore, load_settings, validate
from pathmon.engine import DiagnosticsEngine
from pathmon.health import summarize
from pathmon.models import Settings
from pathmon.probes import ProbeSet


def setup_logging(log_path: Path, verbose: bool = False) -> None:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handlers = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_path, encoding="utf-8"),
    ]
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=handlers,
    )


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Continuous router, internet and DNS health monitor.")
    parser.add_argument("--config", default="config.json", help="Path to config JSON (default: config.json)")
    parser.add_argument("--once", action="store_true", help="Run one round of probes and exit.")
    parser.add_argument("--interval", type=float, help="Override seconds between probe rounds.")
    parser.add_argument("--internet-target", help="Override the host pinged for internet latency.")
    parser.add_argument("--dns-hostname", help="Override the hostname resolved for DNS latency.")
    parser.add_argument("--verbose", action="store_true", help="Log individual probe failures.")
    return parser.parse_args()


def read_settings(args: argparse.Namespace) -> Settings:
    settings = load_settings(args.config) if Path(args.config).exists() else Settings()
    if args.interval is not None:
        settings = replace(settings, interval_seconds=args.interval)
    if args.internet_target:
        settings = replace(settings, internet_target=args.internet_target)
    if args.dns_hostname:
        settings = replace(settings, dns_hostname=args.dns_hostname)
    validate(settings)
    return settings


def report(engine: DiagnosticsEngine) -> None:
    snap = engine.snapshot()
    if not snap.running:
        logging.info("Idle")
        return
    logging.info(
        "%s | %s | %s | portal %s",
        summarize(snap.router),
        summarize(snap.internet),
        summarize(snap.dns),
        snap.captive_portal_status.describe(),
    )


def install_reload_handler(args: argparse.Namespace, store: SettingsStore) -> None:
    if not hasattr(signal, "SIGHUP"):
        return

    def reload(signum, frame) -> None:
        try:
            store.apply(read_settings(args))
        except (OSError, ValueError) as exc:
            logging.error("Config reload failed: %s", exc)
            return
        logging.info("Reloaded %s", args.config)

    signal.signal(signal.SIGHUP, reload)


def main() -> None:
    args = parse_args()
    try:
        settings = read_settings(args)
    except (OSError, ValueError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        sys.exit(1)

    setup_logging(Path(settings.log_path), verbose=args.verbose)
    if not Path(args.config).exists():
        logging.info("%s not found, using defaults", args.config)

    bus = EventBus()
    store = SettingsStore(settings, bus)
    probes = ProbeSet.system(settings)
    engine = DiagnosticsEngine(store, bus, probes=probes)
    auto_starter = None

    first_update = threading.Event()

    def on_update() -> None:
        if engine.internet_history.latest() is not None:
            first_update.set()
        if not args.once:
            report(engine)

    bus.subscribe(Event.UPDATED, on_update)
    install_reload_handler(args, store)

    logging.info("Starting path monitor")
    with engine:
        if settings.auto_start_networks and not args.once:
            logging.info("Waiting for one of: %s", ", ".join(settings.auto_start_networks))
            auto_starter = AutoStarter(engine, store, probes.network_identity).start()
        else:
            engine.start()
        try:
            if args.once:
                if not first_update.wait(settings.ping_timeout + settings.interval_seconds + 5):
                    logging.warning("No probe results within the wait window")
                report(engine)
            else:
                stop_event = threading.Event()
                while not stop_event.wait(0.5):
                    pass
        except KeyboardInterrupt:
            logging.info("Stopping monitor (Ctrl+C pressed)")
        finally:
            if auto_starter is not None:
                auto_starter.cancel()


if __name__ == "__main__":
    main()
