"""Base line-range chunker: structural node batching with line-window fallback."""

import logging
import re
from typing import List, Optional, Set

from .code_metrics import comment_ratio, cyclomatic_complexity, extract_dependencies
from .config import ChunkingConfig
from .language_detector import LanguageDetector
from .models import CodeChunk, make_chunk_id, split_lines, unique_chunk_id
from .structural_parser import (
    BlockStructuralParser,
    SemanticNode,
    StructuralParser,
    get_heuristic_parser,
    get_structural_parser,
)

logger = logging.getLogger(__name__)


class CodeChunker:
    """Splits a file into plain ``CodeChunk`` records.

    Files in languages with a structural parser are chunked along
    declaration boundaries, batching small neighbouring declarations up to
    ``chunk_size`` lines. Anything else is cut at logical breakpoints, or
    into overlapping fixed windows when none are found.
    """

    BREAKPOINT_PATTERNS = {
        'python': (r'^(?:async\s+)?def\s', r'^class\s', r'^@', r'^if\s+__name__'),
        'javascript': (r'^(?:export\s+)?(?:async\s+)?function\s', r'^(?:export\s+)?class\s', r'^(?:export\s+)?const\s+\w+\s*=', r'^module\.exports'),
        'typescript': (r'^(?:export\s+)?(?:async\s+)?function\s', r'^(?:export\s+)?class\s', r'^(?:export\s+)?(?:interface|type|enum)\s'),
        'java': (r'^\s*(?:public|private|protected)\s', r'^\s*@\w+'),
        'markdown': (r'^#{1,6}\s',),
        'yaml': (r'^[A-Za-z_][\w-]*:\s*$',),
        'shell': (r'^(?:function\s+)?\w+\s*\(\)\s*\{',),
        'ruby': (r'^\s*(?:def|class|module)\s',),
    }

    def __init__(self, config: Optional[ChunkingConfig] = None):
        """Initialize the chunker.

        Args:
            config: Chunking configuration, defaults to ``ChunkingConfig()``
        """
        self.config = config or ChunkingConfig()
        self.chunk_size = self.config.chunk_size
        self.chunk_overlap = self.config.chunk_overlap
        self.detector = LanguageDetector()
        logger.debug(
            f"CodeChunker initialized with chunk_size={self.chunk_size}, chunk_overlap={self.chunk_overlap}"
        )

    def chunk_file(self, file_path: str, content: str, snapshot_id: str) -> List[CodeChunk]:
        """Chunk a file into line ranges.

        Args:
            file_path: Path of the file, used for language detection and ids
            content: File content
            snapshot_id: Snapshot the content belongs to

        Returns:
            Chunks ordered by start line
        """
        language = self.detector.detect(file_path, content)
        lines = split_lines(content)
        if not content.strip():
            return []

        parser = get_structural_parser(language, prefer_ast=self.config.use_ast_parsers)
        if not isinstance(parser, BlockStructuralParser):
            try:
                nodes = [node for node in parser.parse(lines) if node.parent_name is None]
                if nodes:
                    chunks = self._chunk_with_nodes(file_path, lines, snapshot_id, language, nodes, parser)
                    logger.debug(f"Created {len(chunks)} structural chunks for {file_path}")
                    return chunks
                logger.debug(f"No declarations found in {file_path}, chunking by lines")
            except Exception as e:
                logger.warning(f"Structural parsing failed for {file_path}: {e}, chunking by lines")

        chunks = self._chunk_by_lines(file_path, lines, snapshot_id, language)
        logger.debug(f"Created {len(chunks)} line-based chunks for {file_path}")
        return chunks

    def create_fixed_size_chunks(self, file_path: str, lines: List[str], snapshot_id: str, language: str,
                                 size: Optional[int] = None, overlap: Optional[int] = None,
                                 start: int = 0, end: Optional[int] = None,
                                 seen_ids: Optional[Set[str]] = None) -> List[CodeChunk]:
        """Cut ``lines[start:end + 1]`` into windows of ``size`` lines.

        Consecutive windows share ``overlap`` lines; the last window always
        ends on ``end``, so the range is covered without gaps.
        """
        size = max(1, size if size is not None else self.chunk_size)
        overlap = overlap if overlap is not None else self.chunk_overlap
        overlap = max(0, min(overlap, size - 1))
        end = len(lines) - 1 if end is None else end
        step = max(1, size - overlap)
        imports = extract_dependencies('\n'.join(lines), language)
        seen_ids = seen_ids if seen_ids is not None else set()

        chunks = []
        window_start = start
        while window_start <= end:
            window_end = min(window_start + size - 1, end)
            chunks.append(self.build_chunk(
                file_path, lines, snapshot_id, window_start, window_end, language,
                imports=imports, seen_ids=seen_ids,
            ))
            if window_end == end:
                break
            window_start += step
        return chunks

    def build_chunk(self, file_path: str, lines: List[str], snapshot_id: str, start_line: int, end_line: int,
                    language: str, symbols: Optional[List[str]] = None, imports: Optional[List[str]] = None,
                    seen_ids: Optional[Set[str]] = None, id_suffix: str = '') -> CodeChunk:
        """Create a chunk for ``lines[start_line:end_line + 1]``."""
        content = '\n'.join(lines[start_line:end_line + 1])
        chunk_id = make_chunk_id(snapshot_id, file_path, start_line, end_line, id_suffix)
        if seen_ids is not None:
            chunk_id = unique_chunk_id(chunk_id, seen_ids)
        if symbols is None:
            symbols = get_heuristic_parser(language).declared_names(lines[start_line:end_line + 1])
        return CodeChunk(
            id=chunk_id,
            content=content,
            file_path=file_path,
            start_line=start_line,
            end_line=end_line,
            snapshot_id=snapshot_id,
            language=language,
            symbols=list(symbols),
            imports=list(imports or []),
            comment_ratio=round(comment_ratio(content), 4),
            complexity=float(cyclomatic_complexity(content, language)),
        )

    def _chunk_with_nodes(self, file_path: str, lines: List[str], snapshot_id: str, language: str,
                          nodes: List[SemanticNode], parser: StructuralParser) -> List[CodeChunk]:
        imports = extract_dependencies('\n'.join(lines), language)
        seen_ids: Set[str] = set()
        ranges = []
        batch: List[SemanticNode] = []

        def flush():
            if batch:
                ranges.append((batch[0].start_line, max(n.end_line for n in batch), [n.name for n in batch]))
                batch.clear()

        for node in nodes:
            if node.line_count > self.chunk_size:
                flush()
                ranges.extend(self._split_large_node(lines, node, parser))
                continue
            if batch and node.end_line - batch[0].start_line + 1 > self.chunk_size:
                flush()
            batch.append(node)
        flush()

        ranges = self._fill_gaps(lines, ranges)
        return [
            self.build_chunk(
                file_path, lines, snapshot_id, start, end, language,
                symbols=symbols, imports=imports, seen_ids=seen_ids,
            )
            for start, end, symbols in ranges
        ]

    def _split_large_node(self, lines: List[str], node: SemanticNode, parser: StructuralParser):
        """Windows over an oversized node; only the first carries the node name."""
        step = max(1, self.chunk_size - min(self.chunk_overlap, self.chunk_size // 4))
        ranges = []
        start = node.start_line
        while start <= node.end_line:
            end = min(start + self.chunk_size - 1, node.end_line)
            # Prefer ending on a natural boundary in the last quarter of the window
            if end < node.end_line:
                for candidate in range(end, start + (self.chunk_size * 3) // 4, -1):
                    if parser.is_boundary(lines[candidate]):
                        end = candidate
                        break
            symbols = [node.name] if start == node.start_line else []
            ranges.append((start, end, symbols))
            if end == node.end_line:
                break
            start = max(start + 1, min(start + step, end + 1))
        return ranges

    def _fill_gaps(self, lines: List[str], ranges):
        """Attach uncovered lines between ranges so the whole file is chunked.

        Short gaps are folded into the following range as leading context;
        gaps of ``chunk_overlap`` lines or more become ranges of their own.
        """
        filled = []
        cursor = 0
        for start, end, symbols in ranges:
            if start > cursor:
                foldable = (start - cursor < max(1, self.chunk_overlap)
                            and end - cursor + 1 <= self.chunk_size + self.chunk_overlap)
                if foldable:
                    start = cursor
                elif any(line.strip() for line in lines[cursor:start]):
                    filled.extend(self._gap_ranges(cursor, start - 1))
            filled.append((start, end, symbols))
            cursor = max(cursor, end + 1)

        if cursor <= len(lines) - 1 and any(line.strip() for line in lines[cursor:]):
            if filled and len(lines) - filled[-1][0] <= self.chunk_size:
                start, _, symbols = filled.pop()
                filled.append((start, len(lines) - 1, symbols))
            else:
                filled.extend(self._gap_ranges(cursor, len(lines) - 1))
        return filled

    def _gap_ranges(self, start: int, end: int):
        ranges = []
        while start <= end:
            stop = min(start + self.chunk_size - 1, end)
            ranges.append((start, stop, None))
            start = stop + 1
        return ranges

    def _chunk_by_lines(self, file_path: str, lines: List[str], snapshot_id: str, language: str) -> List[CodeChunk]:
        breakpoints = self.find_breakpoints(lines, language)
        if len(breakpoints) <= 1:
            return self.create_fixed_size_chunks(file_path, lines, snapshot_id, language)

        imports = extract_dependencies('\n'.join(lines), language)
        seen_ids: Set[str] = set()
        chunks = []
        bounds = breakpoints + [len(lines)]
        section_start = bounds[0]
        for i in range(1, len(bounds)):
            point = bounds[i]
            # Grow the section until the next breakpoint would overflow it
            if point < len(lines) and bounds[i + 1] - section_start <= self.chunk_size:
                continue
            section_end = point - 1
            if section_end - section_start + 1 > self.chunk_size:
                chunks.extend(self.create_fixed_size_chunks(
                    file_path, lines, snapshot_id, language,
                    start=section_start, end=section_end, seen_ids=seen_ids,
                ))
            else:
                chunks.append(self.build_chunk(
                    file_path, lines, snapshot_id, section_start, section_end, language,
                    imports=imports, seen_ids=seen_ids,
                ))
            section_start = point
        return chunks

    def find_breakpoints(self, lines: List[str], language: str) -> List[int]:
        """Line indexes where a new logical section starts, always including 0."""
        patterns = [re.compile(p) for p in self.BREAKPOINT_PATTERNS.get(language, ())]
        breakpoints = [0]
        for i in range(1, len(lines)):
            line = lines[i]
            if not line.strip():
                continue
            after_blank = not lines[i - 1].strip()
            if any(p.search(line) for p in patterns) and (after_blank or language != 'python'):
                if i - breakpoints[-1] >= 2:
                    breakpoints.append(i)
        return breakpoints
