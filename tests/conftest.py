"""共通フィクスチャ."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from loguru import logger

from shared_tag_store.backends.memory_backend import MemoryBackend
from shared_tag_store.config import StoreConfig
from shared_tag_store.store import TagService, open_store


@pytest.fixture
def log_messages() -> Iterator[list[str]]:
    """loguru の WARNING 以上のメッセージを集める."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="WARNING")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def backend() -> MemoryBackend:
    """export 回数を数えられる永続モードのメモリバックエンド."""
    return MemoryBackend(persistent=True)


@pytest.fixture
def principal() -> dict[str, str]:
    """テスト中に差し替え可能な実行者."""
    return {"name": "alice"}


@pytest.fixture
def service(backend: MemoryBackend, principal: dict[str, str]) -> TagService:
    return open_store(
        StoreConfig(persistent=False),
        backend=backend,
        current_principal=lambda: principal["name"],
    )


@pytest.fixture
def simple_service(backend: MemoryBackend, principal: dict[str, str]) -> TagService:
    return open_store(
        StoreConfig(persistent=False, mode="simple"),
        backend=backend,
        current_principal=lambda: principal["name"],
    )
