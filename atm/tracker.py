"""Progress reporting to the desktop."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Optional


class ProgressTracker(ABC):
    """Receives progress of a long-running operation.

    Used as a context manager, the tracker is terminated on exit.
    """

    @abstractmethod
    def set_percent(self, percent: int) -> None:
        """Report overall completion in percent."""

    @abstractmethod
    def set_general_description(self, description: str) -> None:
        """Describe the operation as a whole."""

    @abstractmethod
    def set_message(self, label: str, message: str) -> None:
        """Show a labelled status message."""

    @abstractmethod
    def terminate(self, message: str) -> None:
        """End the operation, with an optional error message."""

    def __enter__(self) -> "ProgressTracker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.terminate("")


class DummyTracker(ProgressTracker):
    """A tracker that shows nothing and only keeps the latest reports."""

    def __init__(self) -> None:
        self.percent: int = 0
        self.description: str = ""
        self.messages: Dict[str, str] = {}
        self.termination_message: Optional[str] = None

    @property
    def terminated(self) -> bool:
        """Whether the operation has been ended."""
        return self.termination_message is not None

    def set_percent(self, percent: int) -> None:
        self.percent = percent

    def set_general_description(self, description: str) -> None:
        self.description = description

    def set_message(self, label: str, message: str) -> None:
        self.messages[label] = message

    def terminate(self, message: str) -> None:
        self.termination_message = message


def select_best_tracker() -> ProgressTracker:
    """Return the best tracker available on this system."""
    return DummyTracker()