from .coordinator import RedemptionCoordinator, truncate_correlation_id
from .exclusion import (
    AdvisoryLockScope,
    ExclusionScope,
    LocalLockScope,
    exclusion_key,
    resolve_exclusion_scope,
)
from .failures import classify_store_failure, to_store_error, with_deadline
from .inventory import CategoryStock, CodeInventoryService, CodeRecord, CodeStatus, RedemptionRecord
from .results import Allocated, AlreadyRedeemed, OutOfStock, RedeemResult, Unavailable, outcome_label

__all__ = [
    "AdvisoryLockScope",
    "Allocated",
    "AlreadyRedeemed",
    "CategoryStock",
    "CodeInventoryService",
    "CodeRecord",
    "CodeStatus",
    "ExclusionScope",
    "LocalLockScope",
    "OutOfStock",
    "RedeemResult",
    "RedemptionCoordinator",
    "RedemptionRecord",
    "Unavailable",
    "classify_store_failure",
    "exclusion_key",
    "outcome_label",
    "resolve_exclusion_scope",
    "to_store_error",
    "truncate_correlation_id",
    "with_deadline",
]
