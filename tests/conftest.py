from unittest.mock import MagicMock

import pytest
from fakes import InMemoryElasticsearch

from esquery import ESConfig, QuerySession, reset_es_client

_ENV_VARS_TO_ISOLATE = [
    "ES_URL",
    "ES_USERNAME",
    "ES_PASSWORD",
    "ES_VERIFY_CERTS",
    "ES_REQUEST_TIMEOUT_S",
    "ES_DEFAULT_PAGE_SIZE",
]


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    for name in _ENV_VARS_TO_ISOLATE:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_shared_client():
    reset_es_client()
    yield
    reset_es_client()


@pytest.fixture
def cfg() -> ESConfig:
    return ESConfig(es_url="http://localhost:9200", default_page_size=10)


@pytest.fixture
def fake_es() -> InMemoryElasticsearch:
    return InMemoryElasticsearch()


@pytest.fixture
def mock_es() -> MagicMock:
    es = MagicMock()
    es.options.return_value = es
    es.search.return_value = {
        "took": 1,
        "hits": {"total": {"value": 0, "relation": "eq"}, "max_score": None, "hits": []},
    }
    return es


@pytest.fixture
def make_session(cfg):
    def _make(es) -> QuerySession:
        return QuerySession(es, cfg)

    return _make
