"""
Pytest configuration file.

Sets up the Python path so test files can import from the python/ directory,
and skips validation of the global configuration on import.
"""
import os
import sys
from pathlib import Path

import pytest

# Add python directory to path for all tests
_python_dir = Path(__file__).parent.parent / 'python'
_python_dir_abs = str(_python_dir.absolute())
if _python_dir_abs not in sys.path:
    sys.path.insert(0, _python_dir_abs)

os.environ.setdefault("SKIP_CONFIG_VALIDATION", "true")


@pytest.fixture
def engine():
    """An empty in-memory Docker engine"""
    from fake_engine import FakeEngine

    return FakeEngine()


@pytest.fixture
def client(engine):
    """A DockerClient driving the in-memory engine"""
    from utils.docker_client import DockerClient

    return DockerClient(runner=engine, binary="docker")
