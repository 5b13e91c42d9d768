import pytest

from Core import history
from Core.context import ShellContext


@pytest.fixture
def context():
    return ShellContext()


@pytest.fixture
def clean_history():
    history.clear_history()
    yield
    history.clear_history()


@pytest.fixture
def in_tmp_cwd(tmp_path, monkeypatch):
    """Run in tmp_path; cd builtins can't leak into other tests."""
    monkeypatch.chdir(tmp_path)
    return tmp_path
