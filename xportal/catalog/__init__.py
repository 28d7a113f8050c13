"""Cluster-wide Crossplane inventory: claims and installed packages."""

from xportal.catalog.claims import (
    ClaimNotFoundError,
    NamespaceSummary,
    get_claim,
    list_claims,
    summarize_claims,
)
from xportal.catalog.packages import fetch_package_dependencies

__all__ = [
    "ClaimNotFoundError",
    "NamespaceSummary",
    "fetch_package_dependencies",
    "get_claim",
    "list_claims",
    "summarize_claims",
]
