"""Graph cache — one compiled graph per pipeline definition.

The pipeline is fixed for the lifetime of the process, so in practice
this holds a single entry; the hash guards against tests or callers
that run different definitions side by side.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import TYPE_CHECKING

from deploymate.agents.builder import build_graph

if TYPE_CHECKING:
    from langgraph.graph.state import CompiledStateGraph

    from deploymate.config import PipelineConfig

logger = logging.getLogger(__name__)

# Cache: {pipeline_hash: compiled_graph}
_cache: dict[str, CompiledStateGraph] = {}


def _hash_pipeline(pipeline: PipelineConfig) -> str:
    """Hash the pipeline definition for change detection."""
    config_json = json.dumps(pipeline.model_dump(), sort_keys=True)
    return hashlib.sha256(config_json.encode()).hexdigest()[:16]


def get_or_build(pipeline: PipelineConfig) -> CompiledStateGraph:
    """Return the cached graph for this pipeline, or build a new one."""
    pipeline_hash = _hash_pipeline(pipeline)

    if pipeline_hash in _cache:
        logger.debug(f"Graph cache hit: {pipeline_hash}")
        return _cache[pipeline_hash]

    logger.info(f"Building pipeline graph {pipeline_hash} (steps={len(pipeline.steps)})")
    graph = build_graph(pipeline)
    _cache[pipeline_hash] = graph
    return graph


def invalidate() -> None:
    """Clear the cache."""
    _cache.clear()
    logger.info("Graph cache invalidated")
