"""Core data structures for xportal."""

from xportal.models.config import XPortalConfig
from xportal.models.resources import (
    CompositionInfo,
    ConditionType,
    ConnectionDetail,
    ConnectionSecret,
    FetchedResource,
    PackageInfo,
    PackageType,
    PropagatedStatus,
    ResourceIdentity,
    ResourceReference,
    ResourceTrace,
    condition_is_true,
)

__all__ = [
    "CompositionInfo",
    "ConditionType",
    "ConnectionDetail",
    "ConnectionSecret",
    "FetchedResource",
    "PackageInfo",
    "PackageType",
    "PropagatedStatus",
    "ResourceIdentity",
    "ResourceReference",
    "ResourceTrace",
    "XPortalConfig",
    "condition_is_true",
]
