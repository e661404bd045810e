"""
Tests for Application Wiring
============================
"""

import logging
import logging.handlers

import pytest
import yaml
from unittest.mock import patch

from soundcam.core.types import ActionEvent, ZoneId
from soundcam.main import build_overrides, main, parse_args
from soundcam.utils.config import Config
from soundcam.utils.logger import ZoneEventLogger, log_timing, setup_logging


@pytest.fixture(autouse=True)
def reset_config():
    Config.reset()
    yield
    Config.reset()


class TestArgs:
    """Command-line parsing."""

    def test_defaults(self):
        args = parse_args([])

        assert args.mode == "control"
        assert args.config is None
        assert build_overrides(args) == {}

    def test_overrides(self):
        args = parse_args(["--camera", "2", "--strategy", "brightness", "--trigger-mode", "edge"])

        assert build_overrides(args) == {
            "camera": {"device_id": 2},
            "detection": {"strategy": "brightness", "trigger_mode": "edge"},
        }

    def test_invalid_strategy_rejected(self):
        with pytest.raises(SystemExit):
            parse_args(["--strategy", "sonar"])


class TestMain:

    @patch("soundcam.main.setup_logging")
    def test_invalid_config_exit_code(self, mock_logging, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"detection": {"cooldown_ms": -5}}))

        assert main(["--config", str(path)]) == 2

    @patch("soundcam.main.setup_logging")
    @patch("soundcam.main.MusicPlayer")
    @patch("soundcam.main.Camera")
    def test_camera_failure_exit_code(self, mock_camera, mock_player, mock_logging, tmp_path):
        mock_camera.return_value.start.return_value = False
        mock_player.return_value.playlist = []

        assert main(["--config", str(tmp_path / "missing.yaml")]) == 1
        mock_player.return_value.close.assert_called_once()


class TestZoneEventLogger:

    def test_records_triggers(self):
        event_logger = ZoneEventLogger(max_history=2)
        for zone in (ZoneId.NEXT, ZoneId.NEXT, ZoneId.PLAY):
            event_logger.log_trigger(event=ActionEvent(zone, 0.0))

        assert event_logger.counts == {"next": 2, "play": 1}
        assert event_logger.total_triggers == 3
        assert [h["zone"] for h in event_logger.get_history()] == ["NEXT", "PLAY"]
        assert len(event_logger.get_history(last_n=1)) == 1

    def test_ignores_empty_payload(self):
        event_logger = ZoneEventLogger()
        event_logger.log_trigger()

        assert event_logger.total_triggers == 0


def test_log_timing_preserves_result(caplog):
    @log_timing
    def open_device(device_id):
        return device_id * 2

    with caplog.at_level(logging.DEBUG):
        assert open_device(21) == 42

    assert open_device.__name__ == "open_device"
    assert any("open_device took" in r.getMessage() for r in caplog.records)


def test_setup_logging_with_rotating_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    log_file = tmp_path / "logs" / "soundcam.log"
    try:
        setup_logging(level="DEBUG", log_file=str(log_file))
        logging.getLogger("soundcam.test").info("hello")

        assert root.level == logging.DEBUG
        assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers)
        for handler in root.handlers:
            handler.flush()
        assert "hello" in log_file.read_text()
    finally:
        for handler in root.handlers:
            if handler not in saved_handlers:
                handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
