"""
MODULE OVERVIEW:
This module provides the observable state container for the coordinator.

WHAT IS HAPPENING HERE:
The coordinator is the single writer of its `ConnectionState`; any number of
readers (the rich dashboard, the CLI, tests) subscribe here. Subscribers are called
synchronously on the event loop right after each change, and a failing subscriber
never breaks the writer or the other subscribers.
"""

from typing import Callable, Generic, List, TypeVar
from loguru import logger

T = TypeVar("T")

class StateStore(Generic[T]):
    """
    A minimal pub/sub holder that always remembers the latest value.
    """
    def __init__(self, initial: T):
        self._value = initial
        self._subscribers: List[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register `callback`; returns a function that removes it again."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, value: T) -> None:
        if value == self._value:
            return
        self._value = value
        for sub in list(self._subscribers):
            try:
                sub(value)
            except Exception as e:
                logger.error(f"Error in subscriber during publish: {e}")
