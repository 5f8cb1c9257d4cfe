"""Outcomes of a redemption attempt."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from codepool_api.core.errors import UnavailableCause
from codepool_api.models.code import CodeCategory


@dataclass(frozen=True)
class Allocated:
    """A fresh code was popped from inventory and marked used."""

    code: str
    code_id: int
    category: CodeCategory


@dataclass(frozen=True)
class AlreadyRedeemed:
    """The player already holds ``code`` for the category; inventory untouched."""

    code: str
    code_id: int
    category: CodeCategory


@dataclass(frozen=True)
class OutOfStock:
    category: CodeCategory


@dataclass(frozen=True)
class Unavailable:
    """Store timed out or was unreachable; the unit was rolled back."""

    category: CodeCategory
    cause: UnavailableCause


RedeemResult = Union[Allocated, AlreadyRedeemed, OutOfStock, Unavailable]


def outcome_label(result: RedeemResult) -> str:
    if isinstance(result, Allocated):
        return "allocated"
    if isinstance(result, AlreadyRedeemed):
        return "already_redeemed"
    if isinstance(result, OutOfStock):
        return "out_of_stock"
    return f"unavailable_{result.cause.value}"


__all__ = [
    "Allocated",
    "AlreadyRedeemed",
    "OutOfStock",
    "RedeemResult",
    "Unavailable",
    "outcome_label",
]
