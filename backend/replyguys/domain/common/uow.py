"""Unit of Work port.

A use case opens the UoW as a context manager, reads and writes through
the repositories it exposes, then commits.  Leaving the block with an
exception rolls back.
"""

from __future__ import annotations

import abc
from typing import Self


class UnitOfWork(abc.ABC):
    """Transactional boundary shared by every repository of one request."""

    reports: object
    replies: object
    activity: object

    @abc.abstractmethod
    def __enter__(self) -> Self:
        ...

    @abc.abstractmethod
    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        ...

    @abc.abstractmethod
    def commit(self) -> None:
        ...

    @abc.abstractmethod
    def rollback(self) -> None:
        ...
