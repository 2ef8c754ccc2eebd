"""Tests for lambda_lens.config — settings and logging setup."""

import logging

import pytest
from pydantic import ValidationError

from lambda_lens.config import Settings, configure_logging
from tests.conftest import make_settings


class TestSettings:
    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.DEBUG_PORT == 5858
        assert str(s.min_version) == "1.0.0"
        assert str(s.max_version) == "2.0.0"
        assert s.WORK_DIR_NAME == ".lambda_lens"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("LAMBDA_LENS_SAM_CLI_LOCATION", "/opt/sam/bin/sam")
        monkeypatch.setenv("LAMBDA_LENS_DEBUG_PORT", "9229")
        s = Settings(_env_file=None)
        assert s.SAM_CLI_LOCATION == "/opt/sam/bin/sam"
        assert s.DEBUG_PORT == 9229

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("LAMBDA_LENS_NODE_RUNTIME=nodejs18.x\n", encoding="utf-8")
        assert Settings(_env_file=str(env_file)).NODE_RUNTIME == "nodejs18.x"

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(SAM_CLI_MIN_VERSION="2.0.0", SAM_CLI_MAX_VERSION="1.0.0")

    def test_malformed_bound_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(SAM_CLI_MIN_VERSION="one")

    def test_port_range(self):
        with pytest.raises(ValidationError):
            make_settings(DEBUG_PORT=70000)


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for h in root.handlers:
            if h not in handlers:
                h.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_level(self):
        configure_logging(make_settings(LOG_LEVEL="debug"))
        assert logging.getLogger().level == logging.DEBUG

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "lens.log"
        configure_logging(make_settings(LOG_FILE=str(log_file)))
        logging.getLogger("lambda_lens.test").warning("[lens:test] hello")
        for h in logging.getLogger().handlers:
            h.flush()
        assert "[lens:test] hello" in log_file.read_text(encoding="utf-8")
