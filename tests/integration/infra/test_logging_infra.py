from __future__ import annotations

"""
Integration tests for Logging Infrastructure.

Verifies the asynchronous QueueListener architecture, idempotency
of configuration, log file rotation and shutdown.
"""

import logging
import time
from logging.handlers import QueueListener
from pathlib import Path

import pytest

from cargoplay.infra.logging import (
    _CONFIGURED_FLAG_ATTR,
    _HANDLER_TAG_ATTR,
    _QUEUE_LISTENER_ATTR,
    LoggingConfig,
    configure_logging,
    get_default_log_path,
    shutdown_logging,
)


def _reset_root() -> None:
    root = logging.getLogger()

    listener = getattr(root, _QUEUE_LISTENER_ATTR, None)
    if listener and isinstance(listener, QueueListener) and getattr(listener, "_thread", None):
        listener.stop()
    setattr(root, _QUEUE_LISTENER_ATTR, None)

    for h in list(root.handlers):
        if getattr(h, _HANDLER_TAG_ATTR, False):
            root.removeHandler(h)
            h.close()

    setattr(root, _CONFIGURED_FLAG_ATTR, False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Clean up our root logger handlers before and after each test."""
    _reset_root()
    yield
    _reset_root()


def _our_handlers() -> list:
    return [h for h in logging.getLogger().handlers if getattr(h, _HANDLER_TAG_ATTR, False)]


def test_logging_idempotency() -> None:
    """TC-01: Multiple config calls do not duplicate handlers."""
    cfg = LoggingConfig(level="INFO", console=True)

    configure_logging(cfg)
    initial_handler_count = len(_our_handlers())

    configure_logging(cfg)
    assert len(_our_handlers()) == initial_handler_count, "Handlers were duplicated."


def test_force_reconfigures_level() -> None:
    configure_logging(LoggingConfig(level="WARNING"))
    configure_logging(LoggingConfig(level="DEBUG"), force=True)

    assert logging.getLogger().level == logging.DEBUG
    assert len(_our_handlers()) == 1


def test_log_rotation(tmp_path: Path) -> None:
    """TC-02: File rotation happens when the size limit is exceeded."""
    log_file = tmp_path / "logs" / "test_rotate.log"
    cfg = LoggingConfig(
        level="DEBUG",
        console=False,
        log_file=str(log_file),
        max_bytes=100,
        backup_count=1,
    )

    configure_logging(cfg)
    logger = logging.getLogger("test_rotate")

    for _ in range(10):
        logger.debug("This is a long log message to trigger rotation." * 5)

    # Let the QueueListener drain
    time.sleep(0.5)

    backup_file = tmp_path / "logs" / "test_rotate.log.1"
    assert log_file.exists()
    assert backup_file.exists(), "Rotation backup file was not created."


def test_unwritable_log_file_does_not_break_setup(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")

    configure_logging(LoggingConfig(level="INFO", log_file=str(blocker / "app.log")))

    assert "cannot open log file" in capsys.readouterr().err
    assert len(_our_handlers()) == 1


def test_shutdown_detaches_handlers() -> None:
    configure_logging(LoggingConfig(level="INFO"))

    shutdown_logging()

    root = logging.getLogger()
    assert _our_handlers() == []
    assert getattr(root, _QUEUE_LISTENER_ATTR) is None
    assert getattr(root, _CONFIGURED_FLAG_ATTR) is False
    # A second shutdown is harmless
    shutdown_logging()


def test_default_log_path_lives_in_user_data_dir(isolated_home: Path) -> None:
    path = get_default_log_path()

    assert Path(path).parent.parent == isolated_home.resolve()
    assert path.endswith("cargoplay.log")
