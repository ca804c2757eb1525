"""
Structured counters and comments reported by the engines.

Both engines write to a DiagnosticsSink: a tree of named scopes, each holding
numeric values, free-text comments and a timer. Diagnostics collects the tree
and logs it through structlog; NullDiagnostics discards everything. The
engines behave identically with either.
"""

import time
from typing import Any, Dict, List, Optional, Protocol

import structlog

logger = structlog.get_logger()


class DiagnosticsSink(Protocol):
    """Narrow interface the engines report through."""

    def record_value(self, key: str, value: float) -> None: ...

    def add_to_value(self, key: str, amount: float = 1.0) -> None: ...

    def record_comment(self, text: str) -> None: ...

    def start_child_scope(self, name: str) -> "DiagnosticsSink": ...

    def stop(self) -> "DiagnosticsSink": ...


class NullDiagnostics:
    """Sink that records nothing."""

    key = "null"

    def record_value(self, key: str, value: float) -> None:
        pass

    def add_to_value(self, key: str, amount: float = 1.0) -> None:
        pass

    def record_comment(self, text: str) -> None:
        pass

    def start_child_scope(self, name: str) -> "NullDiagnostics":
        return self

    def stop(self) -> "NullDiagnostics":
        return self

    def log(self, exception: Optional[BaseException] = None) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class Diagnostics:
    """
    One timed scope of the diagnostics tree.

    Args:
        key: Name of the scope
        include_child_details: Whether log() embeds every child scope or only
            their count and total time
    """

    def __init__(self, key: str, include_child_details: bool = True):
        self.key = key
        self.include_child_details = include_child_details
        self.values: Dict[str, float] = {}
        self.comments: List[str] = []
        self.children: List["Diagnostics"] = []
        self._start = time.perf_counter()
        self._end: Optional[float] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    @property
    def is_ongoing(self) -> bool:
        return self._end is None

    @property
    def elapsed_ms(self) -> float:
        end = self._end if self._end is not None else time.perf_counter()
        return (end - self._start) * 1000.0

    @property
    def own_elapsed_ms(self) -> float:
        """Time spent in this scope outside of its children."""
        return self.elapsed_ms - sum(child.elapsed_ms for child in self.children)

    def record_value(self, key: str, value: float) -> None:
        self.values[key] = value

    def add_to_value(self, key: str, amount: float = 1.0) -> None:
        self.values[key] = self.values.get(key, 0) + amount

    def get_value(self, key: str) -> Optional[float]:
        return self.values.get(key)

    def record_comment(self, text: str) -> None:
        self.comments.append(text)

    def start_child_scope(self, name: str) -> "Diagnostics":
        child = Diagnostics(name, self.include_child_details)
        self.children.append(child)
        return child

    def stop(self) -> "Diagnostics":
        """Stop the timer of this scope and of every child still running."""
        if self._end is None:
            self._end = time.perf_counter()
        for child in self.children:
            if child.is_ongoing:
                child.stop()
        return self

    def total(self, key: str) -> float:
        """Sum of a value over this scope and all its descendants."""
        return self.values.get(key, 0) + sum(child.total(key) for child in self.children)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "key": self.key,
            "elapsed_ms": round(self.elapsed_ms, 3),
            "values": dict(self.values),
        }
        if self.comments:
            result["comments"] = list(self.comments)
        if self.children:
            if self.include_child_details:
                result["children"] = [child.to_dict() for child in self.children]
            else:
                result["children_count"] = len(self.children)
        return result

    def log(self, exception: Optional[BaseException] = None) -> None:
        """Stop the scope and emit it as one structured event."""
        self.stop()
        if exception is not None:
            logger.error(
                f"{self.key} failed",
                error=str(exception),
                error_type=type(exception).__name__,
                diagnostics=self.to_dict(),
            )
        else:
            logger.info(f"{self.key} finished", diagnostics=self.to_dict())
