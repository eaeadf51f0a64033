"""
Pytest configuration for the SharedTool test suite.
"""

import sys
from pathlib import Path

import pytest

# Add backend to Python path for test imports
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))


@pytest.fixture
def license_file(tmp_path: Path) -> Path:
    """Path of a not-yet-existing license file inside tmp_path."""
    return tmp_path / "shared" / "licenses.txt"
