from __future__ import annotations

import logging
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from spo_folder_audit import logging_utils
from spo_folder_audit.domain.models import FilterCriteria, RawAuditRecord
from spo_folder_audit.pipeline.enrich import FilterEnrichPipeline


def _settings(log_file: str | None, level: str = "INFO") -> SimpleNamespace:
    return SimpleNamespace(
        logging=SimpleNamespace(level=level, file=log_file),
    )


@patch("spo_folder_audit.logging_utils.load_settings")
@patch("spo_folder_audit.logging_utils.logging.basicConfig")
def test_configure_logging_stream_only(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings(None)

    logging_utils.configure_logging()

    kwargs = mock_basic_config.call_args.kwargs
    assert kwargs["force"] is True
    assert kwargs["level"] == logging.INFO
    assert len(kwargs["handlers"]) == 1


@patch("spo_folder_audit.logging_utils.load_settings")
@patch("spo_folder_audit.logging_utils.logging.basicConfig")
def test_configure_logging_level_override(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings(None, level="WARNING")

    logging_utils.configure_logging("debug")

    assert mock_basic_config.call_args.kwargs["level"] == logging.DEBUG


@patch("spo_folder_audit.logging_utils.load_settings")
@patch("spo_folder_audit.logging_utils.logging.basicConfig")
def test_configure_logging_with_file(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
    tmp_path,
) -> None:
    log_file = tmp_path / "logs" / "audit.log"
    mock_load_settings.return_value = _settings(str(log_file))

    logging_utils.configure_logging()

    handlers = mock_basic_config.call_args.kwargs["handlers"]
    assert len(handlers) == 2
    assert log_file.parent.is_dir()
    for handler in handlers:
        handler.close()


@patch("spo_folder_audit.logging_utils.load_settings")
@patch("spo_folder_audit.logging_utils.logging.FileHandler", side_effect=OSError("permission denied"))
@patch("spo_folder_audit.logging_utils._logger")
@patch("spo_folder_audit.logging_utils.logging.basicConfig")
def test_configure_logging_file_handler_error(
    _mock_basic_config: MagicMock,
    mock_logger: MagicMock,
    _mock_file_handler: MagicMock,
    mock_load_settings: MagicMock,
    tmp_path,
) -> None:
    mock_load_settings.return_value = _settings(str(tmp_path / "app.log"))

    logging_utils.configure_logging()

    mock_logger.warning.assert_called_once()


def test_get_logger_auto_configures(monkeypatch) -> None:
    monkeypatch.setattr(logging_utils, "_logging_configured", False)

    calls = {"count": 0}

    def fake_configure() -> None:
        calls["count"] += 1
        monkeypatch.setattr(logging_utils, "_logging_configured", True)

    monkeypatch.setattr(logging_utils, "configure_logging", fake_configure)

    logger = logging_utils.get_logger("test.logger")
    assert logger.name == "test.logger"
    assert calls["count"] == 1


def test_records_logger_does_not_configure(monkeypatch) -> None:
    configure = MagicMock()
    monkeypatch.setattr(logging_utils, "_logging_configured", False)
    monkeypatch.setattr(logging_utils, "configure_logging", configure)

    logger = logging_utils.records_logger()

    assert logger.name == logging_utils.RECORDS_LOGGER_NAME
    configure.assert_not_called()


def test_enrich_drop_warnings_use_records_logger(caplog) -> None:
    broken = RawAuditRecord(user_ids="user1@domain.com", operations="FolderDeleted", audit_data_json="{oops")
    pipeline = FilterEnrichPipeline(FilterCriteria(), now=datetime.now(timezone.utc), max_workers=1)

    with caplog.at_level(logging.WARNING, logger=logging_utils.RECORDS_LOGGER_NAME):
        result = pipeline.process([broken])

    assert result.failed == 1
    assert [entry.name for entry in caplog.records] == [logging_utils.RECORDS_LOGGER_NAME]
