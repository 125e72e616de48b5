"""Shared test harness plumbing."""

import os

# Use litellm's bundled model cost map instead of fetching it in a background
# thread at import time; the fetch races test-module imports when offline.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import pytest
import structlog


@pytest.fixture(autouse=True)
def _restore_structlog_config():
    """Keep structlog configuration from leaking between tests.

    The CLI tests call ``configure_logging``, which binds structlog to the
    ``sys.stderr`` stream installed by ``CliRunner``; that stream is closed
    once the invocation ends, so later tests must not keep logging to it.
    """
    saved = structlog.get_config()
    yield
    structlog.reset_defaults()
    structlog.configure(**saved)
