"""
Shared pytest fixtures: a controllable clock, a recording sleep and a scripted fetcher.

Run from the repo root:
    pytest -v
"""

from typing import Any, Iterable, List, Optional, Tuple

import pytest


class FakeClock:
    """Epoch-milliseconds clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = int(start_ms)

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, *, ms: int = 0, s: float = 0.0) -> None:
        self.now_ms += int(ms) + int(s * 1000)


class RecordingSleep:
    """Async sleep replacement that returns immediately and records delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay_s: float) -> None:
        self.delays.append(float(delay_s))


class ScriptedFetcher:
    """Fetcher double. Each call consumes the next scripted outcome.

    An outcome is either a payload dict (returned) or an exception instance (raised).
    Once the script is exhausted the last outcome repeats.
    """

    def __init__(self, outcomes: Iterable[Any]):
        self.outcomes = list(outcomes)
        self.calls: List[Tuple[str, float]] = []

    async def fetch(self, url: str, timeout_s: float) -> Any:
        self.calls.append((url, timeout_s))
        idx = min(len(self.calls) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[idx]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def urls(self) -> List[str]:
        return [u for (u, _t) in self.calls]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def scripted_fetcher():
    def _make(*outcomes: Any, always: Optional[Any] = None) -> ScriptedFetcher:
        return ScriptedFetcher([always] if always is not None else outcomes)
    return _make
