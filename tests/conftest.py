"""Shared test fixtures for the dtss test suite."""

from __future__ import annotations

import os

# Pin Config defaults so a developer's local .env cannot change test outcomes.
os.environ["DTSS_PARTICIPANTS"] = "10"
os.environ["DTSS_THRESHOLD"] = "4"
os.environ.pop("DTSS_PRIME", None)
os.environ.pop("DTSS_INITIAL_SEED", None)
os.environ.setdefault("LOG_FORMAT", "console")

import pytest

from dtss.core.engine import DynamicThresholdEngine
from dtss.utils.crypto import DEFAULT_PRIME

SECRET = 73138218979700741375608676119062004991785096625092157987592068860966427730354 % DEFAULT_PRIME


@pytest.fixture
def engine() -> DynamicThresholdEngine:
    """n=10, t=4 engine over the default 256-bit prime, already initialized."""
    e = DynamicThresholdEngine(n=10, threshold=4)
    e.initialize(SECRET)
    return e
