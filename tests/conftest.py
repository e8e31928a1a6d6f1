"""Shared pytest fixtures for the full chunkwright test suite."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from loguru import logger

from chunkwright.models import Chunk
from tests.fakes import FakeCompletionClient, make_chunks


@pytest.fixture
def fake_client() -> FakeCompletionClient:
    """Provide a completion client that doubles every chunk."""

    return FakeCompletionClient()


@pytest.fixture
def five_chunks() -> list[Chunk]:
    """Provide five contiguous 20-word chunks."""

    return make_chunks(5)


@pytest.fixture(autouse=True)
def _restore_loguru_handlers() -> Iterator[None]:
    """Drop handlers added by `RunLogger` so captured streams are not reused across tests."""

    yield
    logger.remove()
