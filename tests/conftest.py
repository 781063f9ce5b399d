from collections.abc import Iterator
from typing import Any

import pytest

from jsonpathwalk import cache as cache_module
from jsonpathwalk import Configuration, JsonPathWalk, LRUPathCache


def _bookstore() -> dict[str, Any]:
    return {
        "store": {
            "book": [
                {
                    "category": "reference",
                    "author": "Nigel Rees",
                    "title": "Sayings of the Century",
                    "price": 8.95,
                },
                {
                    "category": "fiction",
                    "author": "Evelyn Waugh",
                    "title": "Sword of Honour",
                    "price": 12.99,
                },
                {
                    "category": "fiction",
                    "author": "Herman Melville",
                    "title": "Moby Dick",
                    "isbn": "0-553-21311-3",
                    "price": 8.99,
                },
                {
                    "category": "fiction",
                    "author": "J. R. R. Tolkien",
                    "title": "The Lord of the Rings",
                    "isbn": "0-395-19395-8",
                    "price": 22.99,
                },
            ],
            "bicycle": {"color": "red", "price": 19.95},
        },
        "expensive": 10,
    }


@pytest.fixture
def store() -> dict[str, Any]:
    return _bookstore()


@pytest.fixture
def walk() -> JsonPathWalk:
    return JsonPathWalk(Configuration(cache=LRUPathCache()))


@pytest.fixture
def isolated_shared_cache(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setattr(cache_module, "_shared_cache", None)
    monkeypatch.delenv(cache_module.CACHE_ENV_VAR, raising=False)
    monkeypatch.delenv(cache_module.CACHE_SIZE_ENV_VAR, raising=False)
    yield
