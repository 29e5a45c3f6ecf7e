#!/usr/bin/env python3
"""
kairos: Time Frame Scheduler daemon

Main entry point for the kairos daemon. This service:
1. Loads named times and frame definitions from a TOML file
2. Resolves every frame boundary in one normalization pass
3. Runs the frames against the system clock, logging each lifecycle event
4. Optionally exposes /health, /status and /metrics over HTTP

Usage:
    # Run a schedule
    kairos --config /etc/kairos/schedule.toml

    # Print the first hour of the timeline without waiting for it
    kairos --config schedule.toml --preview PT1H

Configuration:
    [general]
    health_port = 8080          # 0 disables the HTTP endpoint
    poll_interval = 1.0         # seconds between liveness checks
    exit_when_finished = true   # stop once every frame has ended

    [times]
    launch = 2026-10-20T12:00:00Z

    [[frames]]
    name = "countdown"
    related_to = "launch"
    interval = "T1S"
    [frames.end]
    at = "launch"
"""

import argparse
import json
import logging
import signal
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from .engine.clock import Clock, ManualClock, SystemClock
from .engine.scheduler import RELAY_CHANNELS, Scheduler
from .errors import KairosError
from .timing.duration import parse_duration

logger = logging.getLogger('kairos')


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from TOML file."""
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        with open(path, 'r') as f:
            return toml.load(f)

    # Default configuration: one frame ticking on the second for a minute
    return {
        'general': {
            'health_port': 0,
            'poll_interval': 1.0,
            'exit_when_finished': True,
        },
        'times': {
            'now': datetime.now(timezone.utc),
        },
        'frames': [
            {
                'name': 'demo',
                'interval': 'T1S',
                'sync': True,
                'begin': {'at': 'now'},
                'end': {'starting': 'T1M', 'after': 'now'},
            },
        ],
    }


def build_scheduler(
    config: Dict[str, Any],
    clock: Optional[Clock] = None,
    auto_start: bool = False
) -> Scheduler:
    """Create a Scheduler from a configuration dictionary."""
    return Scheduler(
        times=config.get('times', {}),
        frames=config.get('frames', []),
        auto_start=auto_start,
        clock=clock,
    )


def preview(
    config: Dict[str, Any],
    duration_ms: float,
    start_ms: Optional[float] = None
) -> List[Dict[str, Any]]:
    """
    Simulate a schedule on a virtual clock.

    Args:
        config: Configuration dictionary
        duration_ms: How much of the timeline to simulate
        start_ms: Virtual start time (default: now)

    Returns:
        One entry per relayed event, in firing order
    """
    if start_ms is None:
        start_ms = time.time() * 1000
    clock = ManualClock(start_ms=start_ms)
    scheduler = build_scheduler(config, clock=clock)
    timeline: List[Dict[str, Any]] = []

    def recorder(channel: str):
        def record(frame):
            timeline.append({
                'at': clock.now_ms(),
                'event': channel,
                'frame': frame.name,
                'remaining_ms': frame.last_remaining_ms,
            })
        return record

    for channel in RELAY_CHANNELS.values():
        scheduler.subscribe(channel, recorder(channel))

    scheduler.start()
    clock.advance_to(start_ms + duration_ms)
    return timeline


def format_timeline(timeline: List[Dict[str, Any]]) -> str:
    """Render preview output one event per line."""
    lines = []
    for entry in timeline:
        ts = datetime.fromtimestamp(entry['at'] / 1000, tz=timezone.utc)
        lines.append(
            f"{ts.strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]}Z  "
            f"{entry['event']:<13} {entry['frame'] or '-':<20} "
            f"remaining={entry['remaining_ms']}"
        )
    return '\n'.join(lines)


class SchedulerDaemon:
    """
    Main kairos daemon.

    Runs one Scheduler against the system clock and logs its events.
    """

    def __init__(self, config: Dict[str, Any], clock: Optional[Clock] = None):
        """
        Initialize the daemon.

        Args:
            config: Configuration dictionary
            clock: Override the clock (for testing)
        """
        self.config = config
        general = config.get('general', {})
        self.health_port = general.get('health_port', 0)
        self.poll_interval = general.get('poll_interval', 1.0)
        self.exit_when_finished = general.get('exit_when_finished', True)

        self.clock = clock or SystemClock()
        self.scheduler = build_scheduler(config, clock=self.clock)
        self.health_server = None
        self.running = False
        self.events_seen = 0

        for channel in RELAY_CHANNELS.values():
            self.scheduler.subscribe(channel, self._event_logger(channel))

        logger.info("=" * 60)
        logger.info("kairos initializing")
        logger.info(f"  Named times: {len(self.scheduler.moments)}")
        logger.info(f"  Frames: {len(self.scheduler)}")
        logger.info(f"  Health port: {self.health_port or 'disabled'}")
        logger.info("=" * 60)

    def _event_logger(self, channel: str):
        def log_event(frame):
            self.events_seen += 1
            logger.info(
                f"{channel}: {frame.name or 'unnamed'} "
                f"(remaining {frame.last_remaining_ms}ms)"
            )
        return log_event

    def start(self):
        """Start the daemon and block until stopped or finished."""
        logger.info("Starting kairos daemon")
        self.running = True

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        if self.health_port:
            from .output.health_server import HealthServer
            self.health_server = HealthServer(port=self.health_port)
            self.health_server.set_scheduler(self.scheduler)
            self.health_server.start()

        self.scheduler.start()

        try:
            while self.running:
                if self.exit_when_finished and self.scheduler.is_finished:
                    logger.info("All frames ended")
                    break
                time.sleep(self.poll_interval)
        finally:
            self._cleanup()

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down...")
        self.running = False

    def _cleanup(self):
        """Clean up resources on shutdown."""
        logger.info("Cleaning up...")
        self.running = False

        if self.health_server:
            self.health_server.stop()
        if isinstance(self.clock, SystemClock):
            self.clock.stop()

        logger.info(f"Published {self.events_seen} events")
        logger.info("kairos stopped")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='kairos: Time Frame Scheduler',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run a schedule
    kairos --config schedule.toml

    # Preview the next 10 minutes of events
    kairos --config schedule.toml --preview T10M

    # Serve health endpoints on port 8080
    kairos --config schedule.toml --health-port 8080
        """
    )

    parser.add_argument(
        '--config', '-c',
        help='Path to TOML schedule file'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--health-port',
        type=int,
        help='HTTP port for health monitoring endpoint (0 to disable)'
    )
    parser.add_argument(
        '--preview',
        metavar='DURATION',
        help='Simulate this much of the timeline (e.g. PT1H) and print it'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print preview output as JSON'
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = load_config(args.config)
    except (OSError, toml.TomlDecodeError) as e:
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    if args.health_port is not None:
        config.setdefault('general', {})['health_port'] = args.health_port

    try:
        if args.preview:
            timeline = preview(config, parse_duration(args.preview))
            if args.json:
                print(json.dumps(timeline, indent=2))
            else:
                print(format_timeline(timeline))
            return

        daemon = SchedulerDaemon(config)
    except KairosError as e:
        logger.error(f"Invalid schedule: {e}")
        sys.exit(1)

    daemon.start()


if __name__ == '__main__':
    main()
