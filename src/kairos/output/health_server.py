"""
Health Monitoring HTTP Server for kairos.

Exposes the state of a running Scheduler for monitoring systems like
Prometheus, Grafana, or simple health checks.

Endpoints:
    GET /health     - Basic health check (200 OK if running)
    GET /status     - JSON scheduler status and per-frame state
    GET /metrics    - Prometheus-compatible metrics

Usage:
    from kairos.output.health_server import HealthServer

    server = HealthServer(port=8080)
    server.set_scheduler(scheduler)
    server.start()
"""

import json
import logging
import threading
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class HealthRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler for health endpoints."""

    # Class-level reference to status callback
    get_status: Optional[Callable[[], Dict[str, Any]]] = None

    def log_message(self, format, *args):
        """Route HTTP access logging to debug level."""
        logger.debug(format % args)

    def do_GET(self):
        """Handle GET requests."""
        if self.path == '/health':
            self._handle_health()
        elif self.path == '/status':
            self._handle_status()
        elif self.path == '/metrics':
            self._handle_metrics()
        else:
            self.send_error(404, "Not Found")

    def _respond(self, code: int, content_type: str, body: bytes):
        self.send_response(code)
        self.send_header('Content-Type', content_type)
        self.end_headers()
        self.wfile.write(body)

    def _handle_health(self):
        """Basic health check - returns 200 if server is running."""
        self._respond(200, 'text/plain', b'OK\n')

    def _handle_status(self):
        """Return JSON status with frame information."""
        if not self.get_status:
            self._respond(503, 'application/json',
                          json.dumps({'error': 'No scheduler connected'}).encode())
            return
        try:
            status = self.get_status()
            body = json.dumps(status, indent=2, default=str).encode()
            self._respond(200, 'application/json', body)
        except Exception as e:
            logger.error(f"Status request failed: {e}")
            self._respond(500, 'application/json', json.dumps({'error': str(e)}).encode())

    def _handle_metrics(self):
        """Return Prometheus-compatible metrics."""
        if not self.get_status:
            self._respond(503, 'text/plain', b'# No scheduler connected\n')
            return
        try:
            metrics = self._format_prometheus_metrics(self.get_status())
            self._respond(200, 'text/plain; version=0.0.4', metrics.encode())
        except Exception as e:
            logger.error(f"Metrics request failed: {e}")
            self._respond(500, 'text/plain', f'# Error: {e}\n'.encode())

    def _format_prometheus_metrics(self, status: Dict[str, Any]) -> str:
        """Format status as Prometheus metrics."""
        lines = [
            '# HELP kairos_frames Number of time frames by lifecycle state',
            '# TYPE kairos_frames gauge',
            f'kairos_frames{{state="pending"}} {status.get("frames_pending", 0)}',
            f'kairos_frames{{state="started"}} {status.get("frames_started", 0)}',
            f'kairos_frames{{state="ended"}} {status.get("frames_ended", 0)}',
            '',
            '# HELP kairos_frames_paused Number of paused (muted) time frames',
            '# TYPE kairos_frames_paused gauge',
            f'kairos_frames_paused {status.get("frames_paused", 0)}',
        ]

        frames = [f for f in status.get('frames', []) if f.get('name')]
        if frames:
            lines.extend([
                '',
                '# HELP kairos_frame_ticks_total Ticks published by a frame',
                '# TYPE kairos_frame_ticks_total counter',
            ])
            for f in frames:
                lines.append(f'kairos_frame_ticks_total{{frame="{_label(f["name"])}"}} {f.get("tick_count", 0)}')

            lines.extend([
                '',
                '# HELP kairos_frame_tick_lateness_ms Mean delay of ticks past their deadline',
                '# TYPE kairos_frame_tick_lateness_ms gauge',
            ])
            for f in frames:
                lateness = f.get('tick_lateness', {}).get('mean_ms', 0.0)
                lines.append(f'kairos_frame_tick_lateness_ms{{frame="{_label(f["name"])}"}} {lateness:.3f}')

        lines.append('')
        return '\n'.join(lines)


def _label(value: str) -> str:
    return str(value).replace('\\', '\\\\').replace('"', '\\"')


class HealthServer:
    """
    HTTP server for health monitoring.

    Runs in a background thread and provides endpoints for monitoring
    the kairos scheduler daemon.
    """

    def __init__(self, port: int = 8080, bind_address: str = '0.0.0.0'):
        """
        Initialize the health server.

        Args:
            port: HTTP port to listen on
            bind_address: Address to bind to (default: all interfaces)
        """
        self.port = port
        self.bind_address = bind_address
        self.server: Optional[HTTPServer] = None
        self.thread: Optional[threading.Thread] = None
        self.scheduler = None
        self._running = False

    def set_scheduler(self, scheduler):
        """
        Connect to a Scheduler for status reporting.

        Args:
            scheduler: Scheduler instance
        """
        self.scheduler = scheduler
        HealthRequestHandler.get_status = self._get_status

    def _get_status(self) -> Dict[str, Any]:
        """Get current status from the scheduler."""
        if not self.scheduler:
            return {'error': 'No scheduler connected'}
        return self.scheduler.status()

    def start(self):
        """Start the health server in a background thread."""
        if self._running:
            logger.warning("Health server already running")
            return

        try:
            self.server = HTTPServer(
                (self.bind_address, self.port),
                HealthRequestHandler
            )
            # Set timeout so handle_request doesn't block forever
            self.server.timeout = 1.0
            self._running = True

            self.thread = threading.Thread(
                target=self._serve,
                name="HealthServer",
                daemon=True
            )
            self.thread.start()

            logger.info(f"Health server started on http://{self.bind_address}:{self.port}")
            logger.info("  GET /health  - Health check")
            logger.info("  GET /status  - JSON status")
            logger.info("  GET /metrics - Prometheus metrics")

        except OSError as e:
            logger.error(f"Failed to start health server: {e}")
            self._running = False

    def _serve(self):
        """Server loop (runs in background thread)."""
        while self._running:
            try:
                self.server.handle_request()
            except OSError:
                break  # Socket closed during shutdown

    def stop(self):
        """Stop the health server."""
        self._running = False
        if self.thread:
            self.thread.join(timeout=2.0)
            self.thread = None
        if self.server:
            self.server.server_close()
            self.server = None
        logger.info("Health server stopped")
