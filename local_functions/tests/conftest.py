import pytest


@pytest.fixture
def project(tmp_path):
    """An empty project root; actions go under packages/<package>/<action>/."""
    return tmp_path
