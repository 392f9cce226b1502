"""
State Store - Versioned key-value state with per-key merge strategies.

Every node invocation receives a read-only ``State`` snapshot and returns a
partial update. The executor merges all partial updates of one step into the
store as a single batch, producing the next ``State`` version:

    store = StateStore(schema={"messages": Reducer.append()})
    s1 = store.merge([("messages", "hi"), ("task", "fix bug")])
    s2 = store.merge([("messages", ["a", "b"])])

    s1["messages"]  # ["hi"]            (s1 is never mutated)
    s2["messages"]  # ["hi", "a", "b"]
    s2.version      # 2

Merge strategies:
- replace: the new value overwrites the old one
- append: the new value (or each element of a list/tuple) is appended
- custom: a caller-supplied ``fn(current, new)``; ``current`` is None on the
  first write to a key
"""

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Any, NamedTuple

from agentgraph.graph.errors import ReducerMismatch, StateSchemaError

logger = logging.getLogger(__name__)


class MergeStrategy(StrEnum):
    """How a new value for a key combines with the existing one."""

    REPLACE = "replace"
    APPEND = "append"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Reducer:
    """A key's merge rule. Fixed when the graph is defined."""

    strategy: MergeStrategy = MergeStrategy.REPLACE
    fn: Callable[[Any, Any], Any] | None = None

    def __post_init__(self) -> None:
        if self.strategy == MergeStrategy.CUSTOM and self.fn is None:
            raise ValueError("Custom reducers require a combinator function")

    @classmethod
    def replace(cls) -> "Reducer":
        return cls(MergeStrategy.REPLACE)

    @classmethod
    def append(cls) -> "Reducer":
        return cls(MergeStrategy.APPEND)

    @classmethod
    def custom(cls, fn: Callable[[Any, Any], Any]) -> "Reducer":
        return cls(MergeStrategy.CUSTOM, fn)

    def apply(self, current: Any, new: Any, has_current: bool) -> Any:
        """Combine ``new`` into ``current``. Never mutates ``current``."""
        if self.strategy == MergeStrategy.REPLACE:
            return new

        if self.strategy == MergeStrategy.APPEND:
            if not has_current or current is None:
                base = []
            elif isinstance(current, list | tuple):
                base = list(current)
            else:
                base = [current]
            if isinstance(new, list | tuple):
                base.extend(new)
            else:
                base.append(new)
            return base

        return self.fn(current if has_current else None, new)


DEFAULT_REDUCER = Reducer.replace()


class StateUpdate(NamedTuple):
    """One (key, value) write, tagged with the node that produced it."""

    key: str
    value: Any
    source: str | None = None


class State(Mapping[str, Any]):
    """Read-only snapshot of the state at one version.

    Snapshots are safe to retain and compare; the store never mutates one
    after handing it out.
    """

    __slots__ = ("_data", "_version")

    def __init__(self, data: Mapping[str, Any] | None = None, version: int = 0):
        self._data = MappingProxyType(dict(data or {}))
        self._version = version

    @property
    def version(self) -> int:
        return self._version

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def to_dict(self) -> dict[str, Any]:
        """Shallow copy of the values, in key order."""
        return dict(self._data)

    def __repr__(self) -> str:
        return f"State(version={self._version}, data={dict(self._data)!r})"


class StateStore:
    """
    Owns the current state version and the per-key reducer table.

    Only the executor writes to the store; nodes and routers only ever see
    ``State`` snapshots.
    """

    def __init__(
        self,
        schema: Mapping[str, Reducer] | None = None,
        initial: Mapping[str, Any] | None = None,
        version: int = 0,
    ):
        self._reducers: dict[str, Reducer] = dict(schema or {})
        self._current = State(initial, version=version)
        for key in self._current:
            self._reducers.setdefault(key, DEFAULT_REDUCER)

    @property
    def version(self) -> int:
        return self._current.version

    @property
    def reducers(self) -> dict[str, Reducer]:
        return dict(self._reducers)

    def snapshot(self) -> State:
        """Return the current read-only state version."""
        return self._current

    def reducer_for(self, key: str) -> Reducer:
        return self._reducers.get(key, DEFAULT_REDUCER)

    def register(self, key: str, reducer: Reducer) -> None:
        """Register a key's reducer. A key's reducer cannot change once set."""
        existing = self._reducers.get(key)
        if existing is not None and existing != reducer:
            raise StateSchemaError(
                f"Reducer for key '{key}' is already {existing.strategy}; "
                f"cannot change it to {reducer.strategy}",
                details={"key": key},
            )
        self._reducers[key] = reducer

    def merge(self, updates: Iterable[StateUpdate | tuple]) -> State:
        """
        Apply a batch of updates atomically, in arrival order.

        Either every update is applied and a new version is committed, or a
        ReducerMismatch is raised and the current version is left untouched.
        Unknown keys are implicitly registered with the replace strategy.

        Args:
            updates: (key, value) or (key, value, source) items

        Returns:
            The new State version
        """
        batch = [u if isinstance(u, StateUpdate) else StateUpdate(*u) for u in updates]

        data = self._current.to_dict()
        new_keys: list[str] = []
        for update in batch:
            reducer = self._reducers.get(update.key)
            if reducer is None:
                reducer = DEFAULT_REDUCER
                if update.key not in new_keys:
                    new_keys.append(update.key)
            has_current = update.key in data
            try:
                data[update.key] = reducer.apply(data.get(update.key), update.value, has_current)
            except Exception as e:
                logger.warning(
                    f"Reducer for '{update.key}' failed on update from "
                    f"'{update.source or 'unknown'}': {e}"
                )
                raise ReducerMismatch(update.key, e, source=update.source) from e

        for key in new_keys:
            self._reducers[key] = DEFAULT_REDUCER
        self._current = State(data, version=self._current.version + 1)
        return self._current
