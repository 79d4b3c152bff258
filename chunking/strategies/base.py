"""Strategy contract and helpers shared by the chunking strategies."""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import FrozenSet, List, Optional, Set

from ..code_metrics import extract_dependencies, maintainability_index, surrounding_lines
from ..language_detector import LanguageDetector
from ..models import (
    ChunkRelationship,
    CodeChunk,
    ContextInfo,
    EnhancedChunk,
    EnhancedMetadata,
    FileContext,
    LinesOfCode,
    make_chunk_id,
    unique_chunk_id,
)
from ..structural_parser import StructuralParser, get_structural_parser

logger = logging.getLogger(__name__)


class StrategyName(Enum):
    SEMANTIC = 'semantic'
    HIERARCHICAL = 'hierarchical'
    CONTEXT_AWARE = 'contextAware'

    @classmethod
    def parse(cls, name: str) -> Optional['StrategyName']:
        """Look up a strategy by name; ``context-aware`` and ``context_aware`` are accepted too."""
        normalized = name.strip().replace('-', '').replace('_', '').lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return None


class ChunkingStrategy(ABC):
    """One way of cutting a file into enhanced chunks.

    Strategies fill in what they know structurally (symbols, semantic type,
    parent/child or dependency edges, domain tags). The orchestrator adds
    the remaining quality, relationship and context facets afterwards.
    """

    name: StrategyName
    description: str = ''
    SUPPORTED_LANGUAGES: FrozenSet[str] = frozenset()

    def __init__(self, prefer_ast: bool = False):
        self.detector = LanguageDetector()
        self.prefer_ast = prefer_ast

    @abstractmethod
    def is_applicable(self, language: str, content: str) -> bool:
        """Whether this strategy can do better than plain windows on the content."""
        pass

    @abstractmethod
    def chunk(self, content: str, file_path: str, snapshot_id: str) -> List[EnhancedChunk]:
        """Chunk a file.

        Args:
            content: File content
            file_path: Path of the file
            snapshot_id: Snapshot the content belongs to

        Returns:
            Enhanced chunks ordered as the strategy emits them
        """
        pass

    def supports(self, language: str) -> bool:
        return language in self.SUPPORTED_LANGUAGES

    def parser_for(self, language: str) -> StructuralParser:
        """Tree-sitter parser when ``prefer_ast`` is set and a grammar is installed, else heuristic."""
        return get_structural_parser(language, prefer_ast=self.prefer_ast)

    def build_chunk(self, lines: List[str], content: str, file_path: str, snapshot_id: str,
                    language: str, start_line: int, end_line: int, symbols: List[str],
                    semantic_type: str, seen_ids: Set[str], id_suffix: str = '',
                    complexity_score: float = 1.0,
                    dependencies: Optional[List[str]] = None,
                    dependents: Optional[List[str]] = None,
                    design_patterns: Optional[List[str]] = None,
                    relationships: Optional[List[ChunkRelationship]] = None,
                    surrounding_context: Optional[str] = None,
                    business_context: Optional[str] = None) -> EnhancedChunk:
        """Create a preliminary enhanced chunk for ``lines[start_line:end_line + 1]``."""
        text = '\n'.join(lines[start_line:end_line + 1])
        chunk_id = unique_chunk_id(
            make_chunk_id(snapshot_id, file_path, start_line, end_line, id_suffix), seen_ids
        )
        if dependencies is None:
            dependencies = extract_dependencies(text, language)
        if surrounding_context is None:
            surrounding_context = self.surrounding_context(lines, start_line, end_line)

        code_chunk = CodeChunk(
            id=chunk_id,
            content=text,
            file_path=file_path,
            start_line=start_line,
            end_line=end_line,
            snapshot_id=snapshot_id,
            language=language,
            symbols=list(symbols),
        )
        metadata = EnhancedMetadata(
            language=language,
            semantic_type=semantic_type,
            symbols=list(symbols),
            complexity_score=complexity_score,
            maintainability_index=maintainability_index(text),
            dependencies=list(dependencies),
            dependents=list(dependents or []),
            design_patterns=list(design_patterns or []),
            lines_of_code=LinesOfCode.count(text),
        )
        context = ContextInfo(
            surrounding_context=surrounding_context,
            architectural_layer='unknown',
            file_context=FileContext(total_lines=len(lines), file_size=len(content)),
            business_context=business_context,
        )
        return EnhancedChunk(
            chunk=code_chunk,
            metadata=metadata,
            relationships=list(relationships or []),
            context=context,
        )

    @staticmethod
    def surrounding_context(lines: List[str], start_line: int, end_line: int, radius: int = 3) -> str:
        before, after = surrounding_lines(lines, start_line, end_line, radius)
        return '\n'.join(before) + '\n...\n' + '\n'.join(after)
