"""
auth/models.py -- Outcome dataclasses returned by the auth actions.

Pattern: Data class (pure data container, zero logic). An action either
succeeds, is rejected for a reason the user can act on, or raises
auth.actions.ActionError for everything else. The first two are values so
the caller can render them without an exception-handling path.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Success:
    """The provider accepted the request.

    payload is the provider response, unchanged. redirect_to is set when the
    caller should navigate afterwards (login sends the user to "/").
    """

    payload: dict[str, Any] = field(default_factory=dict)
    redirect_to: Optional[str] = None


@dataclass(frozen=True)
class Rejected:
    """The provider refused the request (bad credentials, duplicate account)."""

    message: str


Outcome = Union[Success, Rejected]
