"""
Pytest configuration and fixtures for kairos tests.
"""

import pytest
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))


@pytest.fixture
def clock():
    """Virtual clock starting at a minute boundary (2026-01-01T00:00:00Z)."""
    from kairos.engine.clock import ManualClock
    return ManualClock(start_ms=1_767_225_600_000)


@pytest.fixture
def moments():
    """Named times used by the resolver tests."""
    return {'now': 1000, 'later': 5000}


@pytest.fixture
def recorder():
    """Collects (channel, args) pairs from subscribers."""
    class Recorder:
        def __init__(self):
            self.events = []

        def on(self, channel):
            def record(*args):
                self.events.append((channel, args))
            return record

        @property
        def channels(self):
            return [channel for channel, _ in self.events]

    return Recorder()
