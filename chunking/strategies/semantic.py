"""Semantic strategy: one chunk per declaration, re-split when too large or too branchy."""

import logging
from typing import List, Optional, Set

from ..code_metrics import map_node_type, node_complexity
from ..models import EnhancedChunk, split_lines
from ..structural_parser import (
    BlockStructuralParser,
    SemanticNode,
    StructuralParser,
    get_heuristic_parser,
)
from .base import ChunkingStrategy, StrategyName

logger = logging.getLogger(__name__)

SEMANTIC_LANGUAGES = frozenset({
    'javascript', 'typescript', 'python', 'java', 'c', 'cpp', 'csharp', 'go',
    'rust', 'php', 'ruby', 'swift', 'kotlin', 'scala',
})


def parse_semantic_nodes(lines: List[str], language: str, block_size: int = 50,
                         parser: Optional[StructuralParser] = None) -> List[SemanticNode]:
    """Top-level declarations of a file, or fixed blocks when there are none.

    Members nested in a class stay inside the class node.
    """
    if parser is None:
        parser = get_heuristic_parser(language)
    nodes = [] if isinstance(parser, BlockStructuralParser) else parser.parse(lines)
    nodes = [node for node in nodes if node.parent_name is None]
    if not nodes:
        nodes = BlockStructuralParser(language, block_size).parse(lines)
    return nodes


class SemanticChunkingStrategy(ChunkingStrategy):
    """Chunks along function, class and interface boundaries."""

    name = StrategyName.SEMANTIC
    description = 'Chunks code based on semantic boundaries like functions, classes, and modules with context-aware sizing'
    SUPPORTED_LANGUAGES = SEMANTIC_LANGUAGES

    def __init__(self, max_chunk_size: int = 200, min_chunk_size: int = 10,
                 complexity_threshold: int = 15, block_size: int = 50,
                 overlap: int = 0, prefer_ast: bool = False):
        """Initialize the strategy.

        Args:
            max_chunk_size: Nodes longer than this many lines are re-split
            min_chunk_size: Shortest part a re-split may produce
            complexity_threshold: Nodes above this decision-point count are re-split
            block_size: Block length used when no declarations are found
            overlap: Lines shared by consecutive windows of a node with no natural split points
            prefer_ast: Use tree-sitter grammars when installed
        """
        super().__init__(prefer_ast)
        self.max_chunk_size = max_chunk_size
        self.min_chunk_size = min_chunk_size
        self.complexity_threshold = complexity_threshold
        self.block_size = block_size
        self.overlap = max(0, min(overlap, max_chunk_size - 1))

    def is_applicable(self, language: str, content: str) -> bool:
        if not self.supports(language):
            return False
        return get_heuristic_parser(language).has_constructs(split_lines(content))

    def chunk(self, content: str, file_path: str, snapshot_id: str) -> List[EnhancedChunk]:
        language = self.detector.detect(file_path, content)
        lines = split_lines(content)
        logger.debug(f"Starting semantic chunking for {file_path} ({language})")

        parser = self.parser_for(language)
        nodes = parse_semantic_nodes(lines, language, self.block_size, parser)
        nodes = self.optimize_nodes(lines, nodes, parser)

        seen_ids: Set[str] = set()
        chunks = []
        for node in nodes:
            text = node.text(lines)
            chunks.append(self.build_chunk(
                lines, content, file_path, snapshot_id, language,
                node.start_line, node.end_line,
                symbols=[node.name],
                semantic_type=map_node_type(node.type),
                seen_ids=seen_ids,
                complexity_score=float(min(100, node_complexity(text))),
            ))
        logger.debug(f"Semantic strategy produced {len(chunks)} chunks for {file_path}")
        return chunks

    def optimize_nodes(self, lines: List[str], nodes: List[SemanticNode],
                       parser: StructuralParser) -> List[SemanticNode]:
        """Re-split nodes that are too long or too complex.

        A node still longer than ``max_chunk_size`` after splitting at natural
        boundaries is cut into overlapping windows.
        """
        optimized = []
        for node in nodes:
            too_long = node.line_count > self.max_chunk_size
            too_complex = node_complexity(node.text(lines)) > self.complexity_threshold
            if not (too_long or too_complex):
                optimized.append(node)
                continue
            for part in self.split_node(lines, node, parser):
                if part.line_count > self.max_chunk_size:
                    optimized.extend(self.window_node(part))
                else:
                    optimized.append(part)
        return optimized

    def window_node(self, node: SemanticNode) -> List[SemanticNode]:
        """Cut a node into ``max_chunk_size`` windows.

        Consecutive windows share ``overlap`` lines, at most a quarter of a window.
        """
        step = max(1, self.max_chunk_size - min(self.overlap, self.max_chunk_size // 4))
        windows = []
        start = node.start_line
        while True:
            end = min(start + self.max_chunk_size - 1, node.end_line)
            windows.append(SemanticNode(
                type=node.type,
                name=f"{node.name}_part_{len(windows) + 1}",
                start_line=start,
                end_line=end,
                indent=node.indent,
                parent_name=node.parent_name,
            ))
            if end >= node.end_line:
                return windows
            start += step

    def split_node(self, lines: List[str], node: SemanticNode, parser: StructuralParser) -> List[SemanticNode]:
        points = self.find_split_points(lines, node, parser)
        if not points:
            return [node]

        parts = []
        start = node.start_line
        for point in points + [node.end_line + 1]:
            parts.append(SemanticNode(
                type=node.type,
                name=f"{node.name}_part_{len(parts) + 1}",
                start_line=start,
                end_line=point - 1,
                indent=node.indent,
                parent_name=node.parent_name,
            ))
            start = point
        return parts if len(parts) > 1 else [node]

    def find_split_points(self, lines: List[str], node: SemanticNode, parser: StructuralParser) -> List[int]:
        """Natural boundaries inside a node, spaced within the allowed part sizes."""
        points: List[int] = []
        previous = node.start_line
        for i in range(node.start_line + 1, node.end_line + 1):
            if not parser.is_boundary(lines[i]):
                continue
            distance = i - previous
            if self.min_chunk_size <= distance <= self.max_chunk_size:
                points.append(i)
                previous = i
        return points
