"""
Shared pytest fixtures for SeqMap tests

Supports both development mode (pytest from the repo root) and installed mode (pip install -e .)
"""
import pytest
import json
from pathlib import Path
import sys

# Add repository root to Python path for development mode. Done at import
# time because test modules import seqmap while being collected.
#
#   repo/                         <- repo root (added to sys.path)
#   └── seqmap/                   <- package
#       └── tests/
#           └── conftest.py       <- we are here
REPO_ROOT = Path(__file__).parent.parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture(scope="session")
def fixtures_dir() -> Path:
    """Return path to fixtures directory"""
    return Path(__file__).parent / "fixtures"


@pytest.fixture(scope="session")
def genbank_file(fixtures_dir) -> Path:
    """Small circular plasmid: spliced, partial, single-base and origin-spanning features"""
    return fixtures_dir / "inputs" / "test_plasmid.gb"


@pytest.fixture(scope="session")
def sites_file(fixtures_dir) -> Path:
    """Restriction site table matching the test plasmid (one malformed row)"""
    return fixtures_dir / "inputs" / "test_sites.tsv"


@pytest.fixture(scope="session")
def record_json_file(fixtures_dir) -> Path:
    """Decoded linear record with one malformed segment and one fully malformed feature"""
    return fixtures_dir / "inputs" / "test_record.json"


@pytest.fixture(scope="session")
def linear_record(record_json_file):
    """Parsed content of the linear JSON record"""
    with open(record_json_file) as f:
        return json.load(f)


@pytest.fixture
def make_feature():
    """
    Factory for features from 1-based (start, end) pairs

    make_feature(1, [(101, 201)], gene='lacZ') -> CDS over 0-based 100..200
    """
    from seqmap.layout import Feature

    def _make(feature_id, spans, feature_type='CDS', reverse=False, **info):
        location = tuple((str(s), reverse, str(e)) for s, e in spans)
        return Feature(feature_id=feature_id, type=feature_type, location=location, info=dict(info))

    return _make


@pytest.fixture
def monospace():
    """Deterministic measurer: 6 px per character, 7 px high"""
    def _measure(text):
        return len(text) * 6.0, 7.0
    return _measure


# Pytest configuration
def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests for individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests running full layout passes"
    )
    config.addinivalue_line(
        "markers", "geometry: Tests validating shape and coordinate geometry"
    )
    config.addinivalue_line(
        "markers", "labels: Tests covering label placement and relaxation"
    )
