import argparse
import io
import logging

import tunedin.logging_utils as logging_utils
from tunedin.logging_utils import RunSummary, add_logging_args, redact, resolve_log_level, stage_timer


def test_quiet_suppresses_info(monkeypatch):
    buf = io.StringIO()
    monkeypatch.setattr(logging_utils, "_logging_configured", False)
    monkeypatch.setattr(logging_utils.sys, "stdout", buf)
    logging_utils.configure_logging(level="WARNING", console=True, force=True)

    logger = logging.getLogger("quiet_test")
    logger.info("info hidden")
    logger.warning("warn shown")

    output = buf.getvalue()
    assert "info hidden" not in output
    assert "warn shown" in output


def test_run_id_in_file_log(tmp_path, monkeypatch):
    log_file = tmp_path / "logs" / "blend.log"
    monkeypatch.setattr(logging_utils, "_logging_configured", False)
    logging_utils.configure_logging(level="INFO", log_file=str(log_file), console=False, force=True, run_id="room-9")
    try:
        logging.getLogger("run_id_test").info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "run_id=room-9" in log_file.read_text(encoding="utf-8")
    finally:
        logging_utils.set_run_id(None)
        for handler in logging.getLogger().handlers[:]:
            if getattr(handler, "_tunedin_handler", False):
                logging.getLogger().removeHandler(handler)
                handler.close()


def test_redact_masks_tokens():
    text = redact({"Authorization": "Bearer abc.def", "access_token": "xyz"})
    assert "abc.def" not in text
    assert "xyz" not in text
    assert "***REDACTED***" in text
    assert redact(None) == "None"
    assert redact("/home/alice/config.yaml") == "/home/***/config.yaml"


def test_stage_timer_logs(caplog):
    logger = logging.getLogger("stage_test")
    with caplog.at_level(logging.DEBUG, logger="stage_test"):
        with stage_timer("Blend scoring", logger):
            pass
    assert "Blend scoring completed in" in caplog.text


def test_run_summary(caplog):
    logger = logging.getLogger("summary_test")
    summary = RunSummary("Blend room", logger=logger)
    summary.add("selected", 3)
    summary.increment("skipped")
    summary.increment("skipped", 2)
    with caplog.at_level(logging.INFO, logger="summary_test"):
        summary.log()
    assert "BLEND ROOM SUMMARY" in caplog.text
    assert "Selected: 3" in caplog.text
    assert "Skipped: 3" in caplog.text


def test_logging_args():
    parser = argparse.ArgumentParser()
    add_logging_args(parser)
    assert resolve_log_level(parser.parse_args([])) == "INFO"
    assert resolve_log_level(parser.parse_args(["--quiet"])) == "WARNING"
    assert resolve_log_level(parser.parse_args(["--debug", "--quiet"])) == "DEBUG"


def test_run_id_scope_restores_previous():
    logging_utils.set_run_id("outer")
    try:
        with logging_utils.run_id_scope("room-1"):
            assert logging_utils.get_run_id() == "room-1"
        assert logging_utils.get_run_id() == "outer"
    finally:
        logging_utils.set_run_id(None)


def test_run_id_filter_defaults_to_dash():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    logging_utils.RunIdFilter().filter(record)
    assert record.run_id == "-"
