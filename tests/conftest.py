import pytest

import echoserver
from echoserver.config import ENVIRONMENT_VARIABLES


@pytest.fixture
def api():
    return echoserver.API(debug=False)


@pytest.fixture
def session(api):
    return api.requests


@pytest.fixture
def clean_environ(monkeypatch):
    for name in (*ENVIRONMENT_VARIABLES.values(), "PORT"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
