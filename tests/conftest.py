"""Shared pytest fixtures"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from src.config.settings import Settings
from fakes import FakeGemini, InMemoryStorage


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        gemini_api_key=None,
        retry_base_delay_seconds=0.0,
        retry_max_delay_seconds=0.0,
    )


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def gemini():
    return FakeGemini()
