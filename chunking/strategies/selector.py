"""Ordered strategy registry."""

import logging
from typing import Dict, List, Optional, Union

from ..config import ChunkingConfig
from .base import ChunkingStrategy, StrategyName
from .context_aware import ContextAwareChunkingStrategy
from .hierarchical import HierarchicalChunkingStrategy
from .semantic import SemanticChunkingStrategy

logger = logging.getLogger(__name__)


class StrategySelector:
    """Picks the first applicable strategy in registration order."""

    def __init__(self, strategies: Optional[List[ChunkingStrategy]] = None,
                 config: Optional[ChunkingConfig] = None):
        self._strategies: Dict[StrategyName, ChunkingStrategy] = {}
        for strategy in strategies if strategies is not None else default_strategies(config):
            self.register(strategy)

    def register(self, strategy: ChunkingStrategy):
        """Add or replace a strategy; replacements keep their original position."""
        self._strategies[strategy.name] = strategy

    @property
    def strategies(self) -> List[ChunkingStrategy]:
        return list(self._strategies.values())

    def get(self, name: Union[str, StrategyName, None]) -> Optional[ChunkingStrategy]:
        if name is None:
            return None
        if not isinstance(name, StrategyName):
            name = StrategyName.parse(name)
            if name is None:
                return None
        return self._strategies.get(name)

    def applicable(self, language: str, content: str,
                   preferred: Union[str, StrategyName, None] = None) -> Optional[ChunkingStrategy]:
        """The preferred strategy if it applies, else the first that does, else ``None``."""
        strategy = self.get(preferred)
        if strategy is not None:
            if strategy.is_applicable(language, content):
                return strategy
            logger.debug(f"Preferred strategy {strategy.name.value} not applicable to {language}")
        elif preferred is not None:
            logger.warning(f"Unknown chunking strategy {preferred!r}, selecting automatically")

        for candidate in self._strategies.values():
            if candidate.is_applicable(language, content):
                return candidate
        return None

    def select(self, language: str, content: str,
               preferred: Union[str, StrategyName, None] = None) -> ChunkingStrategy:
        """Like ``applicable`` but never empty-handed: defaults to the semantic strategy."""
        strategy = self.applicable(language, content, preferred)
        if strategy is not None:
            return strategy
        default = self._strategies.get(StrategyName.SEMANTIC)
        if default is None:
            default = next(iter(self._strategies.values()))
        return default


def default_strategies(config: Optional[ChunkingConfig] = None) -> List[ChunkingStrategy]:
    """Semantic, hierarchical and context-aware strategies sized from ``config``."""
    config = config or ChunkingConfig()
    return [
        SemanticChunkingStrategy(
            max_chunk_size=config.chunk_size,
            overlap=config.chunk_overlap,
            prefer_ast=config.use_ast_parsers,
        ),
        HierarchicalChunkingStrategy(),
        ContextAwareChunkingStrategy(prefer_ast=config.use_ast_parsers),
    ]
