"""
Tests for logging setup — level resolution and handlers.
"""

import logging

import pytest

from provisioner.core.observability.logging_config import ENV_FILE, bind_run, resolve_level, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logger(monkeypatch):
    monkeypatch.delenv(ENV_FILE, raising=False)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestResolveLevel:
    def test_precedence(self):
        assert resolve_level(debug=True, verbose=True, quiet=True, env={}) == "DEBUG"
        assert resolve_level(verbose=True, quiet=True, env={}) == "INFO"
        assert resolve_level(quiet=True, env={"PROVISION_LOG_LEVEL": "DEBUG"}) == "ERROR"

    def test_env_then_default(self):
        assert resolve_level(env={"PROVISION_LOG_LEVEL": "INFO"}) == "INFO"
        assert resolve_level(env={}) == "WARNING"


class TestSetupLogging:
    def test_console_only(self):
        setup_logging("INFO")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.INFO

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "provision.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        logging.getLogger("provisioner.test").debug("into the file only")
        for handler in root.handlers:
            handler.flush()
        assert "into the file only" in log_file.read_text()

    def test_bad_level_falls_back(self):
        setup_logging("LOUD")
        assert logging.getLogger().level == logging.WARNING

    def test_third_party_quieted(self):
        setup_logging("INFO")
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_file_lines_carry_run_id(self, tmp_path):
        log_file = tmp_path / "provision.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="INFO")
        log = logging.getLogger("provisioner.test")
        bind_run(None)

        log.info("before")
        bind_run("run-20260101-000000-abc123")
        log.info("during")
        bind_run(None)

        for handler in logging.getLogger().handlers:
            handler.flush()
        lines = log_file.read_text().splitlines()
        assert "[-]" in lines[0]
        assert "[run-20260101-000000-abc123]" in lines[1]
