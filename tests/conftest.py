"""Pytest fixtures for ClawTrap tests."""

import os
import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from clawtrap.canary.generator import CanaryGenerator
from clawtrap.canary.reporter import CanaryReporter
from clawtrap.detection.classifier import AgentClassifier
from clawtrap.detection.engine import AttackPatternEngine
from clawtrap.honeypot import Honeypot
from clawtrap.reporting.pipeline import ReportingPipeline
from clawtrap.reporting.sinks import ReportingSink
from clawtrap.responder.agent import DeceptiveResponder
from clawtrap.session.rate_limiter import RateLimiter
from clawtrap.session.registry import SessionRegistry

TEST_INSTANCE_ID = "test-instance"


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Set up test environment variables before any settings are read.

    Points rule loading at a directory that does not exist so the built-in
    rules are used, and clears the settings cache so tests start fresh.
    """
    os.environ.setdefault("CLAWTRAP_INSTANCE_ID", TEST_INSTANCE_ID)
    os.environ.setdefault("CLAWTRAP_PATTERNS_DIR", "/nonexistent/clawtrap-patterns")

    from clawtrap.config import get_settings

    get_settings.cache_clear()

    yield

    # Cleanup after all tests
    get_settings.cache_clear()


@pytest.fixture
def mock_sink():
    """Reporting sink that accepts every batch."""
    sink = MagicMock(spec=ReportingSink)
    sink.deliver = AsyncMock(return_value=True)
    sink.close = AsyncMock()
    return sink


@pytest.fixture
def pipeline(mock_sink):
    """Pipeline with a periodic flush that never fires during a test."""
    return ReportingPipeline(mock_sink, max_size=1000, flush_interval_seconds=3600)


@pytest.fixture
def engine():
    """Attack pattern engine with the built-in rules."""
    return AttackPatternEngine()


@pytest.fixture
def canaries():
    """Canary generator scoped to the test instance."""
    return CanaryGenerator(TEST_INSTANCE_ID)


@pytest.fixture
def responder():
    """Seeded responder without simulated think time."""
    return DeceptiveResponder(delay_range_ms=(0, 0), rng=random.Random(42))


@pytest.fixture
def honeypot(pipeline, engine, canaries, responder):
    """Honeypot assembled from test components; background loops not started."""
    return Honeypot(
        engine=engine,
        classifier=AgentClassifier(),
        canaries=canaries,
        canary_reporter=CanaryReporter(canaries, pipeline),
        responder=responder,
        registry=SessionRegistry(
            max_sessions=100,
            rate_limiter=RateLimiter(max_per_window=1000, window_seconds=60.0),
        ),
        pipeline=pipeline,
        instance_id=TEST_INSTANCE_ID,
    )
