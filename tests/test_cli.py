"""Tests for command line parsing and logging setup."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import pytest

from pglens.cli import build_parser, build_startup_config, main
from pglens.shared.core import store
from pglens.shared.core.log_setup import LOG_FILE_NAME, debug_requested, setup_logging


class TestStartupConfig:
    def test_no_flags_opens_the_dialog(self):
        args = build_parser().parse_args([])
        assert build_startup_config(args) is None

    def test_flags_fill_in_defaults(self, monkeypatch):
        monkeypatch.delenv("PGPASSWORD", raising=False)
        args = build_parser().parse_args(["--host", "db.internal", "--user", "alice"])

        config = build_startup_config(args)

        assert config.host == "db.internal"
        assert config.port == 5432
        assert config.database == "postgres"
        assert config.user == "alice"
        assert config.password is None
        assert config.sslmode == "prefer"

    def test_password_comes_from_the_environment(self, monkeypatch):
        monkeypatch.setenv("PGPASSWORD", "s3cret")
        args = build_parser().parse_args(["--port", "6543", "--sslmode", "require"])

        config = build_startup_config(args)

        assert config.host == "localhost"
        assert config.port == 6543
        assert config.password == "s3cret"
        assert config.sslmode == "require"

    def test_invalid_sslmode_is_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--sslmode", "sometimes"])


class TestMain:
    def test_unwritable_config_dir_exits_with_error(self, monkeypatch, capsys):
        def fail(path=None):
            raise OSError("read-only file system")

        monkeypatch.setattr(store, "ensure_config_dir", fail)

        assert main([]) == 1
        assert "read-only file system" in capsys.readouterr().err


class TestLogging:
    @pytest.fixture(autouse=True)
    def restore_handlers(self):
        logger = logging.getLogger("pglens")
        saved = list(logger.handlers), logger.level, logger.propagate
        yield
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        handlers, level, propagate = saved
        for handler in handlers:
            logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = propagate

    def test_disabled_by_default(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PGLENS_DEBUG", raising=False)

        assert setup_logging(tmp_path) is None
        assert not (tmp_path / LOG_FILE_NAME).exists()
        assert all(isinstance(h, logging.NullHandler) for h in logging.getLogger("pglens").handlers)

    def test_debug_writes_a_rotating_file(self, tmp_path):
        path = setup_logging(tmp_path, debug=True)

        assert path == tmp_path / LOG_FILE_NAME
        handlers = logging.getLogger("pglens").handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], RotatingFileHandler)
        logging.getLogger("pglens.test").debug("hello from the test")
        handlers[0].flush()
        assert "hello from the test" in path.read_text()

    def test_repeated_setup_replaces_handlers(self, tmp_path):
        setup_logging(tmp_path, debug=True)
        setup_logging(tmp_path, debug=True)
        assert len(logging.getLogger("pglens").handlers) == 1

    @pytest.mark.parametrize("value,expected", [("1", True), ("yes", True), ("TRUE", True), ("0", False), ("", False)])
    def test_environment_switch(self, monkeypatch, value, expected):
        monkeypatch.setenv("PGLENS_DEBUG", value)
        assert debug_requested() is expected
