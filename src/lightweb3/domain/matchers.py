from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Protocol, Union, runtime_checkable

from .models import Log


@runtime_checkable
class LogMatcher(Protocol):
    """Local acceptance test applied to every log a wait sees. Must not do I/O."""

    def matches(self, log: Log) -> bool: ...


MatcherLike = Union[LogMatcher, Callable[[Log], bool]]


@dataclass(slots=True, frozen=True)
class _CallableMatcher:
    fn: Callable[[Log], bool]

    def matches(self, log: Log) -> bool:
        return bool(self.fn(log))


def as_matcher(m: MatcherLike | None) -> LogMatcher:
    if m is None:
        return AnyLog()
    if isinstance(m, LogMatcher):
        return m
    if callable(m):
        return _CallableMatcher(m)
    raise TypeError(f"expected a LogMatcher or callable, got {type(m).__name__}")


@dataclass(slots=True, frozen=True)
class AnyLog:
    def matches(self, log: Log) -> bool:
        return True


@dataclass(slots=True, frozen=True)
class TopicEquals:
    position: int
    value: bytes

    def matches(self, log: Log) -> bool:
        return len(log.topics) > self.position and log.topics[self.position] == self.value


@dataclass(slots=True, frozen=True)
class FromTransaction:
    tx_hash: int

    def matches(self, log: Log) -> bool:
        return log.tx_hash is not None and int(log.tx_hash) == int(self.tx_hash)
