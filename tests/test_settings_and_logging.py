import logging
from contextlib import contextmanager

import pytest

from hs_consolidation import cli
from hs_consolidation.config.settings import Settings
from hs_consolidation.util.logger import init_logger, set_log_level
from hs_consolidation.util.timing import timed


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("HSC_SIMILARITY_THRESHOLD", "0.8")
    monkeypatch.setenv("HSC_ENABLE_LLM", "true")
    s = Settings()
    assert s.SIMILARITY_THRESHOLD == 0.8
    assert s.ENABLE_LLM is True


def test_ttl_properties():
    s = Settings(EMBEDDING_CACHE_TTL_MINUTES=2, DECISION_CACHE_TTL_MINUTES=1)
    assert s.embedding_cache_ttl_seconds == 120
    assert s.decision_cache_ttl_seconds == 60


def test_out_of_range_threshold_rejected():
    with pytest.raises(ValueError):
        Settings(SIMILARITY_THRESHOLD=1.5)


def test_timed_logs_duration_and_fields(caplog):
    logger = logging.getLogger("hs_consolidation.test")
    with caplog.at_level(logging.INFO, logger="hs_consolidation.test"):
        with timed(logger, "cluster", n=3):
            pass
    assert len(caplog.records) == 1
    message = caplog.records[0].getMessage()
    assert message.startswith("cluster.done ms=")
    assert message.endswith(" n=3")


def test_init_logger_is_idempotent():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    root.__dict__.pop("_hs_consolidation_inited", None)
    try:
        init_logger(Settings())
        count = len(root.handlers)
        init_logger(Settings())
        assert len(root.handlers) == count
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        root.__dict__.pop("_hs_consolidation_inited", None)


@contextmanager
def fresh_root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    root.__dict__.pop("_hs_consolidation_inited", None)
    try:
        yield root
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        root.__dict__.pop("_hs_consolidation_inited", None)


def test_set_log_level_updates_handlers():
    with fresh_root_logger() as root:
        init_logger(Settings(LOG_LEVEL="WARNING"))
        assert all(h.level == logging.WARNING for h in root.handlers)

        set_log_level(logging.DEBUG)
        assert root.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in root.handlers)


def test_cli_debug_flag_reaches_handlers(capsys):
    with fresh_root_logger() as root:
        assert cli.main(["--debug", "--children", "22"]) == 0
        assert root.handlers
        assert root.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in root.handlers)
    capsys.readouterr()
