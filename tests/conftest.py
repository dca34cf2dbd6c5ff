import sys
from pathlib import Path

import pytest


# Ensure top-level packages (`recorder`, `pipeline`, ...) import under pytest
# by putting the repo root on sys.path.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import AIServiceConfig  # noqa: E402
from recorder.recording import Recording  # noqa: E402


@pytest.fixture
def service() -> AIServiceConfig:
    return AIServiceConfig(api_key="sk-test", base_url="https://api.test/v1")


@pytest.fixture
def recording(tmp_path) -> Recording:
    return Recording.create(b"\x1aE\xdf\xa3fake-webm", tmp_path / "recordings")
