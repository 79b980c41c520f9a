import pytest

from locsync.core.fragment_store import FragmentStore

from fakes import FakeNotaClient


@pytest.fixture
def client():
    return FakeNotaClient()


@pytest.fixture
def store(tmp_path):
    return FragmentStore(tmp_path / "mod-data")


@pytest.fixture
def assets_dir(tmp_path):
    path = tmp_path / "assets"
    path.mkdir()
    return path
