# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/libum

from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

from libum.types import Conference, RawSession

__all__ = ["SecretsProvider", "SessionSource"]


@runtime_checkable
class SecretsProvider(Protocol):
    """Protocol for accessing secrets and credentials."""

    def get_user_credential(self, key: str) -> Any:
        """Retrieve a user credential (e.g. a user:pass string) by key."""
        ...


class SessionSource(ABC):
    """The contract the session cache reads conference data through."""

    @abstractmethod
    async def fetch_conferences(self) -> list[Conference]:
        """Return every known conference."""
        pass  # pragma: no cover

    @abstractmethod
    async def fetch_sessions(self, conference_id: str) -> list[RawSession]:
        """Return the raw sessions submitted to one conference."""
        pass  # pragma: no cover
