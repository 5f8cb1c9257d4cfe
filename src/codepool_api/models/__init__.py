"""SQLAlchemy models package."""

from .code import CodeCategory, CodeRedemption, RedemptionCode  # noqa: F401

__all__ = ["CodeCategory", "CodeRedemption", "RedemptionCode"]
