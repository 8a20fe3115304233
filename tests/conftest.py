from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from pygentrack.engine import ReconciliationEngine
from pygentrack.store import RedisDeltaStore

MUTATING_COMMANDS = frozenset({"SADD", "SREM", "DEL"})


@dataclass
class FakeRedis:
    """In-memory stand-in for the subset of ``redis.asyncio.Redis`` we use."""

    sets: dict[str, set[str]] = field(default_factory=dict)
    calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)
    failing_keys: set[str] = field(default_factory=set)
    failing_substrings: set[str] = field(default_factory=set)
    failing_commands: set[str] = field(default_factory=set)
    closed: bool = False

    def _check(self, command: str, keys: tuple[str, ...]) -> None:
        if self.failing_commands and command not in self.failing_commands:
            return
        for key in keys:
            if key in self.failing_keys or any(part in key for part in self.failing_substrings):
                raise RedisConnectionError(f"{command} {key}: connection refused")

    def _run(self, command: str, *args: Any) -> Any:
        self.calls.append((command, args))
        if command == "SMEMBERS":
            (key,) = args
            self._check(command, (key,))
            return set(self.sets.get(key, set()))
        if command == "SADD":
            key, *members = args
            self._check(command, (key,))
            target = self.sets.setdefault(key, set())
            before = len(target)
            target.update(members)
            return len(target) - before
        if command == "SREM":
            key, *members = args
            self._check(command, (key,))
            target = self.sets.get(key, set())
            removed = len(target & set(members))
            target.difference_update(members)
            if not target:
                self.sets.pop(key, None)
            return removed
        if command == "DEL":
            self._check(command, args)
            return sum(1 for key in args if self.sets.pop(key, None) is not None)
        raise NotImplementedError(command)

    async def smembers(self, key: str) -> set[str]:
        return self._run("SMEMBERS", key)

    async def sadd(self, key: str, *members: str) -> int:
        return self._run("SADD", key, *members)

    async def srem(self, key: str, *members: str) -> int:
        return self._run("SREM", key, *members)

    async def delete(self, *keys: str) -> int:
        return self._run("DEL", *keys)

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self, transaction=transaction)

    async def aclose(self) -> None:
        self.closed = True

    @property
    def mutations(self) -> list[tuple[str, tuple[Any, ...]]]:
        return [call for call in self.calls if call[0] in MUTATING_COMMANDS]

    def members(self, key: str) -> set[str]:
        return set(self.sets.get(key, set()))


class FakePipeline:
    def __init__(self, redis: FakeRedis, *, transaction: bool) -> None:
        self._redis = redis
        self.transaction = transaction
        self._queued: list[tuple[str, tuple[Any, ...]]] = []

    async def __aenter__(self) -> FakePipeline:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self._queued.clear()

    def smembers(self, key: str) -> FakePipeline:
        self._queued.append(("SMEMBERS", (key,)))
        return self

    def sadd(self, key: str, *members: str) -> FakePipeline:
        self._queued.append(("SADD", (key, *members)))
        return self

    def srem(self, key: str, *members: str) -> FakePipeline:
        self._queued.append(("SREM", (key, *members)))
        return self

    async def execute(self) -> list[Any]:
        queued, self._queued = self._queued, []
        # MULTI/EXEC: refuse the whole batch if any command would fail.
        for command, args in queued:
            keys = args if command == "DEL" else args[:1]
            self._redis._check(command, keys)  # noqa: SLF001
        return [self._redis._run(command, *args) for command, args in queued]  # noqa: SLF001


NAMESPACE = "heartbeat::generatorChanges"


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store(fake_redis: FakeRedis) -> RedisDeltaStore:
    return RedisDeltaStore(fake_redis, namespace=NAMESPACE)  # type: ignore[arg-type]


@pytest.fixture
def engine(store: RedisDeltaStore) -> ReconciliationEngine:
    return ReconciliationEngine(store)
