"""
Tests for configuration loading, schedule preview and the daemon wrapper.
"""

import pytest
import toml
from unittest.mock import MagicMock

T0 = 1_767_225_600_000


@pytest.fixture
def config():
    """A small schedule: one ticking frame followed by an untimed one."""
    return {
        'general': {'health_port': 0, 'poll_interval': 0.01},
        'times': {'start': T0, 'launch': T0 + 10_000},
        'frames': [
            {
                'name': 'countdown',
                'related_to': 'launch',
                'interval': 'T1S',
                'begin': {'at': 'start'},
                'end': {'after': 'start', 'starting': 2500},
            },
            {
                'name': 'idle',
                'begin': {'at': 'launch'},
            },
        ],
    }


class TestLoadConfig:
    """Tests for load_config."""

    def test_default_config(self):
        from kairos.main import load_config

        config = load_config()

        assert config['general']['health_port'] == 0
        assert 'now' in config['times']
        assert config['frames'][0]['name'] == 'demo'

    def test_load_from_toml(self, tmp_path):
        from kairos.main import load_config

        path = tmp_path / 'schedule.toml'
        with open(path, 'w') as f:
            toml.dump({
                'general': {'health_port': 8080},
                'times': {'launch': T0},
                'frames': [{'name': 'a', 'interval': 'T1S', 'begin': T0}],
            }, f)

        loaded = load_config(str(path))

        assert loaded['general']['health_port'] == 8080
        assert loaded['times']['launch'] == T0
        assert loaded['frames'] == [{'name': 'a', 'interval': 'T1S', 'begin': T0}]

    def test_toml_datetimes(self, tmp_path):
        """TOML datetimes are usable as named times."""
        from kairos.main import build_scheduler, load_config

        path = tmp_path / 'schedule.toml'
        path.write_text(
            '[times]\n'
            'launch = 2026-01-01T00:00:00Z\n'
            '\n'
            '[[frames]]\n'
            'name = "before"\n'
            '[frames.end]\n'
            'at = "launch"\n'
        )

        scheduler = build_scheduler(load_config(str(path)))

        assert scheduler.moments['launch'] == T0
        assert scheduler.get_frame('before').ends_at == T0

    def test_missing_file(self, tmp_path):
        from kairos.main import load_config

        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / 'missing.toml'))


class TestBuildScheduler:
    """Tests for build_scheduler."""

    def test_not_started_by_default(self, config, clock):
        from kairos.main import build_scheduler

        scheduler = build_scheduler(config, clock=clock)

        assert len(scheduler) == 2
        assert not any(f.is_started for f in scheduler)

    def test_empty_config(self, clock):
        from kairos.main import build_scheduler

        scheduler = build_scheduler({}, clock=clock)
        assert len(scheduler) == 0

    def test_duplicate_names(self, config, clock):
        from kairos.errors import DuplicateNameError
        from kairos.main import build_scheduler

        config['frames'][1]['name'] = 'countdown'
        with pytest.raises(DuplicateNameError):
            build_scheduler(config, clock=clock)


class TestPreview:
    """Tests for the virtual-clock preview."""

    def test_timeline(self, config):
        from kairos.main import preview

        timeline = preview(config, 12_000, start_ms=T0)

        assert [(e['at'] - T0, e['event'], e['frame']) for e in timeline] == [
            (0, 'frameStarted', 'countdown'),
            (0, 'frameTicked', 'countdown'),
            (1000, 'frameTicked', 'countdown'),
            (2000, 'frameTicked', 'countdown'),
            (2500, 'frameEnded', 'countdown'),
            (10_000, 'frameStarted', 'idle'),
        ]
        assert [e['remaining_ms'] for e in timeline[1:4]] == [10_000, 9_000, 8_000]

    def test_preview_window_limits_events(self, config):
        from kairos.main import preview

        timeline = preview(config, 1500, start_ms=T0)
        assert len(timeline) == 3

    def test_format_timeline(self):
        from kairos.main import format_timeline

        text = format_timeline([
            {'at': T0 + 250, 'event': 'frameTicked', 'frame': 'countdown', 'remaining_ms': 5000},
            {'at': T0, 'event': 'frameStarted', 'frame': None, 'remaining_ms': 0},
        ])
        first, second = text.splitlines()

        assert first.startswith('2026-01-01 00:00:00.250Z')
        assert 'frameTicked' in first and 'countdown' in first
        assert first.endswith('remaining=5000')
        assert ' - ' in second


class TestSchedulerDaemon:
    """Tests for SchedulerDaemon."""

    def test_initialization(self, config, clock):
        from kairos.main import SchedulerDaemon

        daemon = SchedulerDaemon(config, clock=clock)

        assert daemon.health_port == 0
        assert daemon.poll_interval == 0.01
        assert daemon.exit_when_finished is True
        assert daemon.running is False
        assert len(daemon.scheduler) == 2

    def test_events_are_counted(self, config, clock):
        from kairos.main import SchedulerDaemon

        daemon = SchedulerDaemon(config, clock=clock)
        daemon.scheduler.start()
        clock.advance(12_000)

        assert daemon.events_seen == 6
        assert daemon.scheduler.is_finished is False

    def test_signal_handler_stops_loop(self, config, clock):
        from kairos.main import SchedulerDaemon

        daemon = SchedulerDaemon(config, clock=clock)
        daemon.running = True
        daemon._signal_handler(15, None)

        assert daemon.running is False

    def test_cleanup_stops_health_server(self, config, clock):
        from kairos.main import SchedulerDaemon

        daemon = SchedulerDaemon(config, clock=clock)
        daemon.health_server = MagicMock()
        daemon._cleanup()

        daemon.health_server.stop.assert_called_once()
