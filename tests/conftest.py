from __future__ import annotations

import io
import pathlib
import sys
from typing import Any

import pytest

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from discord_mcp.permissions.gate import PermissionGate  # noqa: E402
from discord_mcp.registry import ToolRegistry  # noqa: E402
from discord_mcp.remote.state import StateClient  # noqa: E402
from discord_mcp.tools import build_registry  # noqa: E402
from discord_mcp.tools.base import ToolContext  # noqa: E402
from discord_mcp.transport.stdio import StdioSession  # noqa: E402
from discord_mcp.transport.writer import LineWriter  # noqa: E402
from tests.helpers.snapshot import build_snapshot  # noqa: E402


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def repo_root() -> pathlib.Path:
    return REPO_ROOT


@pytest.fixture
def snapshot() -> dict[str, Any]:
    return build_snapshot()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client(snapshot: dict[str, Any], clock: FakeClock) -> StateClient:
    return StateClient(snapshot, clock=clock)


@pytest.fixture
def moderator_client(clock: FakeClock) -> StateClient:
    return StateClient(build_snapshot(bot_roles=["201"]), clock=clock)


@pytest.fixture
def gate(client: StateClient) -> PermissionGate:
    return PermissionGate(client)


@pytest.fixture
def registry() -> ToolRegistry:
    return build_registry()


@pytest.fixture
def context(client: StateClient, gate: PermissionGate) -> ToolContext:
    return ToolContext(client=client, gate=gate)


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def writer(output: io.StringIO) -> LineWriter:
    return LineWriter(output)


@pytest.fixture
def session(registry: ToolRegistry, context: ToolContext, writer: LineWriter) -> StdioSession:
    return StdioSession(registry, context, writer)
