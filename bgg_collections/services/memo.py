"""Equality-keyed memoization for pure pipeline stages."""

from collections.abc import Callable, Mapping
from typing import Any, Generic, TypeVar

R = TypeVar("R")


class Memo(Generic[R]):
    """Cache the results of a pure function keyed on its arguments.

    Arguments are matched by identity first and by equality second, so
    unhashable inputs (lists, dicts, dataclasses holding them) work.
    Mappings only match when their keys are in the same order, since
    stages such as the merge depend on insertion order.
    Inputs must not be mutated in place after a call; the pipeline always
    replaces its collections and maps instead.

    The cache keeps the ``max_entries`` most recently used results, or
    everything when ``max_entries`` is None.
    """

    def __init__(self, func: Callable[..., R], max_entries: int | None = 32) -> None:
        self._func = func
        self._max_entries = max_entries
        self._entries: list[tuple[tuple[Any, ...], R]] = []
        self.hits = 0
        self.misses = 0

    def __call__(self, *args: Any) -> R:
        for index, (key, value) in enumerate(self._entries):
            if _same_arguments(key, args):
                self.hits += 1
                if index != len(self._entries) - 1:
                    self._entries.append(self._entries.pop(index))
                return value

        self.misses += 1
        value = self._func(*args)
        self._entries.append((args, value))
        if self._max_entries is not None and len(self._entries) > self._max_entries:
            self._entries.pop(0)
        return value

    def clear(self) -> None:
        self._entries.clear()


def _same_value(a: Any, b: Any) -> bool:
    if a is b:
        return True
    if type(a) is not type(b):
        return False
    if isinstance(a, Mapping):
        return list(a.items()) == list(b.items())
    return a == b


def _same_arguments(left: tuple[Any, ...], right: tuple[Any, ...]) -> bool:
    if len(left) != len(right):
        return False
    return all(_same_value(a, b) for a, b in zip(left, right))
