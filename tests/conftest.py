# tests/conftest.py
"""Shared test fixtures and helpers.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/

Orphan tests:
    Orphan reporting is driven by garbage collection. Tests drop the last
    strong reference to a TraceContext with ``del`` and call ``gc.collect()``
    so the weakref callback has run before the next registry call.
"""

import os

import pytest
from hypothesis import Phase, Verbosity, settings

from spankeeper.contracts.context import TraceContext
from spankeeper.core.clock import MockClock

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Shared Fixtures
# =============================================================================


@pytest.fixture
def mock_clock() -> MockClock:
    """Deterministic clock at wall time 1_000_000us, ticks 0."""
    return MockClock(wall_microseconds=1_000_000, ticks_ns=0)


@pytest.fixture
def root_context() -> TraceContext:
    """A local root context with a 128-bit trace id."""
    return TraceContext(trace_id_high=0xA, trace_id=0x1, span_id=0x1)


@pytest.fixture
def child_context(root_context: TraceContext) -> TraceContext:
    """A child of root_context in the same process."""
    return TraceContext(
        trace_id_high=root_context.trace_id_high,
        trace_id=root_context.trace_id,
        span_id=0x2,
        local_root_id=root_context.span_id,
        parent_id=root_context.span_id,
    )
