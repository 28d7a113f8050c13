"""Resource trace assembly for Crossplane claims.

Submodules:
    references -- ordered extractor table for child references.
    paths      -- API path heuristics and rescoping.
    enrichment -- events and connection-detail metadata per node.
    status     -- propagated Ready/Synced aggregation.
    assembler  -- TraceAssembler, the recursive walk itself.
"""

from xportal.trace.assembler import TraceAssembler, TraceContext, TraceError

__all__ = ["TraceAssembler", "TraceContext", "TraceError"]
