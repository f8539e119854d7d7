import sys
from pathlib import Path

import pytest

# Ensure the backend modules are importable
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from fakes import FakeDocumentClient  # noqa: E402
from local_cache import LocalCache  # noqa: E402
from services import build_services  # noqa: E402


@pytest.fixture()
def client() -> FakeDocumentClient:
    return FakeDocumentClient()


@pytest.fixture()
def cache_dir(tmp_path) -> str:
    return str(tmp_path / "cache")


@pytest.fixture()
def cache(cache_dir) -> LocalCache:
    return LocalCache.in_directory(cache_dir)


@pytest.fixture()
def services(client, cache_dir):
    return build_services(client, cache_dir)
