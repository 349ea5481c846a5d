"""NAPWATCH — Abstract Platform Provider."""

from abc import ABC, abstractmethod
from typing import Union

from app.models.identity_models import FetchFailure, PlatformTarget, RawSnapshot

FetchResult = Union[RawSnapshot, FetchFailure]


class PlatformProvider(ABC):
    """Abstract gateway to one kind of external listing source.

    Implementations own their retry/backoff and timeout policy and must never
    raise: every failure is returned as a FetchFailure.
    """

    @abstractmethod
    async def fetch_snapshot(self, target: PlatformTarget) -> FetchResult:
        """Fetch the identity data currently published on ``target``.

        Args:
            target: The configured platform to read.

        Returns:
            A RawSnapshot on success, otherwise a FetchFailure whose reason is
            one of timeout, network, not_found, parse_error.
        """
        ...

    async def close(self) -> None:
        """Release any held resources."""
        return None
