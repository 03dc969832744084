from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

_START = Path(__file__).resolve().parent
_repo_root = _START
while _repo_root != _repo_root.parent and not (_repo_root / "pyproject.toml").exists():
    _repo_root = _repo_root.parent

sys.path.insert(0, str(_repo_root))


class FakeCompletionClient:
    """Completion client whose requests stay pending until the test settles them."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.pending: list[asyncio.Future] = []

    async def complete(self, prompt, credential, *, model=None, endpoint=None):
        future = asyncio.get_running_loop().create_future()
        self.calls.append(
            {"prompt": prompt, "credential": credential, "model": model, "endpoint": endpoint}
        )
        self.pending.append(future)
        return await future


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run until they block on something the test controls."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def fake_client() -> FakeCompletionClient:
    return FakeCompletionClient()
