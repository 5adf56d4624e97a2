"""Unit tests for structlog configuration and tenant-scoped log binding."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from knowledge_rag.utils.logging import QUIET_LOGGERS, configure_logging, log_scope


@pytest.fixture(autouse=True)
def _restore_logging():
    """Undo global logging changes made by configure_logging()."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    quiet_levels = {name: logging.getLogger(name).level for name in QUIET_LOGGERS}
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, quiet_level in quiet_levels.items():
        logging.getLogger(name).setLevel(quiet_level)


def _last_json_line(output: str) -> dict:
    return json.loads(output.strip().splitlines()[-1])


class TestConfigureLogging:
    def test_client_libraries_quietened(self) -> None:
        configure_logging("INFO")

        assert all(logging.getLogger(name).level == logging.WARNING for name in QUIET_LOGGERS)
        assert logging.getLogger().level == logging.INFO

    def test_debug_keeps_client_libraries_verbose(self) -> None:
        configure_logging("debug")

        assert logging.getLogger("chromadb").level == logging.DEBUG

    def test_production_renders_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("INFO", app_env="production")

        structlog.get_logger().info("ingestion_complete", chunks=3)

        line = _last_json_line(capsys.readouterr().out)
        assert line["event"] == "ingestion_complete"
        assert line["chunks"] == 3
        assert line["level"] == "info"
        assert "timestamp" in line

    def test_level_filters_structlog_calls(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("WARNING", json_output=True)

        structlog.get_logger().info("chromadb_upsert_chunk")

        assert capsys.readouterr().out == ""


class TestLogScope:
    def test_binds_tenant_and_skips_missing_agent(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("INFO", json_output=True)

        with log_scope(tenant_id="acme", agent_id=None):
            structlog.get_logger().info("search_complete", results=2)

        line = _last_json_line(capsys.readouterr().out)
        assert line["tenant_id"] == "acme"
        assert "agent_id" not in line

    def test_unbinds_after_block(self) -> None:
        with log_scope(tenant_id="acme", agent_id="support"):
            assert structlog.contextvars.get_contextvars() == {
                "tenant_id": "acme",
                "agent_id": "support",
            }

        assert structlog.contextvars.get_contextvars() == {}
