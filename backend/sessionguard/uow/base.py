"""
Abstract Unit of Work contract.

A unit of work brackets one store operation: every repository it exposes
shares one transaction, which is committed when the block exits cleanly and
rolled back otherwise.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol


class SupportsCommit(Protocol):
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


class UnitOfWork(ABC):
    """Template for transactional scopes.

    Subclasses implement :meth:`commit` and :meth:`rollback`; the context
    manager protocol is shared.
    """

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.rollback()
            return
        try:
            self.commit()
        except Exception:
            self.rollback()
            raise

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...
