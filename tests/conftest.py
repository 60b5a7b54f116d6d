"""
Shared fixtures for the matrixprod test suite.
"""

import logging
import os
import sys

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from matrixprod import _blas, capabilities, logging_config
from matrixprod.capabilities import CapabilityRecord


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: long-running performance tests")


@pytest.fixture
def make_capabilities():
    """Factory for capability records with overridable fields."""
    def factory(**overrides) -> CapabilityRecord:
        fields = dict(
            has_vendor_blas=False,
            has_opencl=False,
            has_gpu=False,
            thread_count=8,
            simd_tier=1,
            est_gflops_small=15.0,
            est_gflops_medium=80.0,
            est_gflops_large=90.0,
        )
        fields.update(overrides)
        return CapabilityRecord(**fields)
    return factory


@pytest.fixture
def no_blas(monkeypatch):
    """Pretend discovery ran and found no vendor BLAS; records probed meanwhile are discarded."""
    monkeypatch.setattr(capabilities, "_RECORD", None)
    monkeypatch.setattr(_blas, "_PROVIDER", None)
    monkeypatch.setattr(_blas, "_LOADED", True)


@pytest.fixture
def fresh_probe(monkeypatch):
    """Clear the cached capability record for the duration of a test."""
    monkeypatch.setattr(capabilities, "_RECORD", None)


@pytest.fixture
def restore_logging():
    """Undo handlers and level changes made by ``setup_logging``."""
    logger = logging.getLogger("matrixprod")
    level = logger.level
    handlers = list(logger.handlers)
    yield logger
    logging_config._remove_installed(logger)
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
    logger.setLevel(level)
