"""Interchangeable chunking strategies and their selector."""

from .base import ChunkingStrategy, StrategyName
from .context_aware import ContextAwareChunkingStrategy
from .hierarchical import HierarchicalChunkingStrategy
from .selector import StrategySelector
from .semantic import SemanticChunkingStrategy

__all__ = [
    'ChunkingStrategy',
    'StrategyName',
    'StrategySelector',
    'SemanticChunkingStrategy',
    'HierarchicalChunkingStrategy',
    'ContextAwareChunkingStrategy',
]
