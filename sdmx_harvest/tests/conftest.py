"""
Shared pytest fixtures for sdmx-harvest tests.

This module provides common fixtures used across all test modules.
Import fixtures from here instead of defining them in individual test files.
"""
from __future__ import annotations

import logging

import pytest

from sdmx_harvest.config import Settings, get_settings, load_settings
from sdmx_harvest.models import DataStructure
from sdmx_harvest.providers.static import StaticDataflowSource
from sdmx_harvest.tests.utils import make_dataflow, make_structure


HARVEST_ENV_VARS = (
    "SDEM_URL",
    "DATASTRUCTURE_URL_FORMAT",
    "REST_URL_BASE",
    "LOGO_URL",
    "RECORD_PUBLISHER",
    "RECORD_LANGUAGE",
    "RECORD_FORMAT",
    "RIGHTS_NAME",
    "RIGHTS_URI",
    "ALLOWED_DIMENSIONS",
    "DATAFLOW_PATTERN",
    "GEO_DIMENSION",
    "REQUEST_TIMEOUT",
    "MAX_RETRIES",
    "RETRY_BACKOFF",
    "LOG_LEVEL",
)


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def test_environment(monkeypatch, tmp_path):
    """Run every test without harvester variables or a stray .env file."""
    for key in HARVEST_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo logging configuration done by the command line entry point."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def settings() -> Settings:
    """Default settings with retries that never wait."""
    return load_settings(_env_file=None, retry_backoff=0.0)


# ============================================================================
# Catalogue Fixtures
# ============================================================================

@pytest.fixture
def gdp_structure() -> DataStructure:
    """GEO x UNIT are expandable; FREQ has one code; TIME_PERIOD is never allow-listed."""
    return make_structure(
        "NAMA_10_GDP",
        [
            ("FREQ", ["A"]),
            ("UNIT", ["CP_MEUR", "PC_GDP"]),
            ("GEO", ["DE", "FR"]),
            ("TIME_PERIOD", ["2020", "2021"]),
        ],
        names={"DE": "Germany", "FR": "France", "A": "Annual"},
    )


@pytest.fixture
def static_source(gdp_structure) -> StaticDataflowSource:
    """A/B/C catalogue where B references a structure that does not exist."""
    return StaticDataflowSource(
        dataflows=[
            make_dataflow("A", "NAMA_10_GDP", "GDP and main components"),
            make_dataflow("B", "MISSING_DSD", "Broken dataflow"),
            make_dataflow("C", "PRC_HICP", "HICP"),
        ],
        structures={
            "NAMA_10_GDP": gdp_structure,
            "PRC_HICP": make_structure("PRC_HICP", [("GEO", ["EA"]), ("UNIT", ["I15"])]),
        },
        version="SDEM-2024-01",
        name="TEST",
    )
