"""
Collective reductions for (potentially) distributed runs.

Every component that reduces a value over all cells (global error norms,
minimum cell size, maximum cell error) receives a ``ParallelContext``
explicitly instead of reaching for a process-wide communicator.
``SerialContext`` is the single-process implementation.
"""

from abc import ABC, abstractmethod


class ParallelContext(ABC):
    """Rank information plus min/max/sum reductions over all ranks."""

    @property
    @abstractmethod
    def rank(self) -> int:
        ...

    @property
    @abstractmethod
    def size(self) -> int:
        ...

    @property
    def is_root(self) -> bool:
        return self.rank == 0

    @abstractmethod
    def min(self, value: float) -> float:
        ...

    @abstractmethod
    def max(self, value: float) -> float:
        ...

    @abstractmethod
    def sum(self, value: float) -> float:
        ...


class SerialContext(ParallelContext):
    """Single rank; every reduction is the identity."""

    @property
    def rank(self) -> int:
        return 0

    @property
    def size(self) -> int:
        return 1

    def min(self, value: float) -> float:
        return float(value)

    def max(self, value: float) -> float:
        return float(value)

    def sum(self, value: float) -> float:
        return float(value)

    def __repr__(self) -> str:
        return "SerialContext()"
