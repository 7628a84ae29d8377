"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import asyncio
from typing import List, Tuple

import pytest

from minessh.commands.executor import DirectiveExecutor
from minessh.core.orchestrator import Orchestrator
from minessh.core.personas import PersonaLibrary
from minessh.llm.client import AssistantMessage
from minessh.llm.context import ContextBuilder
from minessh.models import ModelParams, Persona
from minessh.session.transport import TransportError


class FakeGateway:
    """Model gateway whose replies are released by the test."""

    def __init__(self):
        self.calls = []
        self.pending: List[asyncio.Future] = []

    async def chat(self, context, params):
        self.calls.append(context)
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future

    def resolve(self, content: str) -> None:
        self.pending.pop(0).set_result(AssistantMessage(content))

    def fail(self, exc: Exception) -> None:
        self.pending.pop(0).set_exception(exc)


class RecordingTransport:
    """Session transport that records writes instead of sending them."""

    def __init__(self):
        self.writes: List[Tuple[str, bytes]] = []
        self.error = None

    def write(self, session_id: str, data: bytes) -> None:
        if self.error:
            raise self.error
        self.writes.append((session_id, data))


class ManualClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def personas() -> PersonaLibrary:
    return PersonaLibrary([
        Persona("ops", "Ops Expert", "You manage Linux servers."),
        Persona("logs", "Log Analyst", "You read logs carefully."),
    ], active_id="ops")


@pytest.fixture
def context_builder() -> ContextBuilder:
    return ContextBuilder("You are a helpful SSH assistant.", "Use <run> tags. One action per turn.")


@pytest.fixture
def orchestrator(gateway, transport, clock, personas, context_builder):
    orch = Orchestrator(
        "s1",
        gateway,
        DirectiveExecutor(transport),
        context_builder,
        personas,
        ModelParams(provider="ollama", base_url="http://127.0.0.1:11434", model="llama3"),
        auto_run=True,
        quiescence_seconds=5.0,
        tick_interval=60.0,
        clock=clock,
    )
    return orch


@pytest.fixture
def transport_error() -> TransportError:
    return TransportError("Session s1 is closed")
