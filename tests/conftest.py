import asyncio

import pytest

from dal.memory_store import InMemoryKeyedStore
from services.openai.chat_gateway import ChatGatewayError
from services.session.engine import SessionEngine
from tests.fakes import FakeGateway


@pytest.fixture
def store():
    return InMemoryKeyedStore()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def failing_gateway():
    return FakeGateway(error=ChatGatewayError("upstream timed out"))


@pytest.fixture
def engine(store, gateway):
    return SessionEngine(store, gateway)


@pytest.fixture
def run():
    """Drive a coroutine to completion from a synchronous test."""
    return asyncio.run
