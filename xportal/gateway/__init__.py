"""Resource fetch gateway: one request per API path, typed failures.

Submodules:
    base       -- ResourceGateway ABC, FetchError, FetchResult.
    paths      -- REST path parsing shared by gateway implementations.
    kubernetes -- kubernetes-asyncio backed gateway and its factory.
"""

from xportal.gateway.base import FetchError, FetchResult, ResourceGateway

__all__ = ["FetchError", "FetchResult", "ResourceGateway"]
