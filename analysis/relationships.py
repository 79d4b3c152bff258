"""Cross-chunk relationship discovery.

Each pass looks at one chunk against its siblings and emits directed edges
(calls, imports, extends/implements, uses, tests, similar_to). Candidate
targets come from a symbol index (declared name -> chunk positions), so a
chunk is only compared against the chunks whose names it actually mentions;
only the similarity pass is all-pairs.
"""

import logging
import re
import time
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Set

import numpy as np

from chunking.code_metrics import extract_dependencies, is_test_path
from chunking.models import ChunkRelationship, EnhancedChunk

logger = logging.getLogger(__name__)

ANALYSIS_TYPES = ('imports', 'calls', 'inheritance', 'usage', 'tests', 'similarity')

IDENTIFIER = re.compile(r'[A-Za-z_$][\w$]*')
WORD = re.compile(r'\w+')
EXTENDS_CLAUSE = re.compile(r'\bextends\s+([\w$.]+(?:\s*<[^>{]*>)?(?:\s*,\s*[\w$.]+(?:\s*<[^>{]*>)?)*)')
IMPLEMENTS_CLAUSE = re.compile(r'\bimplements\s+([\w$.]+(?:\s*<[^>{]*>)?(?:\s*,\s*[\w$.]+(?:\s*<[^>{]*>)?)*)')
PYTHON_BASES = re.compile(r'^\s*class\s+\w+\s*\(([^)]*)\)', re.MULTILINE)
TEST_MARKERS = re.compile(r'(?<![\w$.])(?:describe|it|test|expect)\s*\(|\bdef test_|@Test\b')
GENERIC_ARGUMENTS = re.compile(r'<[^>]*>')

IGNORED_BASES = {'object', 'ABC', 'Generic', 'Protocol'}


@lru_cache(maxsize=4096)
def call_pattern(symbol: str):
    return re.compile(rf'(?<![\w$]){re.escape(symbol)}\s*\(')


@lru_cache(maxsize=4096)
def usage_pattern(symbol: str):
    return re.compile(rf'(?<![\w$]){re.escape(symbol)}(?![\w$])(?!\s*\()')


def jaccard(a: Set[str], b: Set[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def line_of(chunk: EnhancedChunk, offset: int) -> int:
    """Absolute line number of a character offset inside a chunk."""
    return chunk.start_line + chunk.content.count('\n', 0, offset)


def import_segments(import_path: str) -> List[str]:
    """Path segments of an import target, without relative markers or extension."""
    normalized = import_path.replace('\\', '/')
    if '/' in normalized:
        segments = normalized.split('/')
        if segments and '.' in segments[-1]:
            segments[-1] = segments[-1].rsplit('.', 1)[0]
    else:
        segments = normalized.split('.')
    return [segment for segment in segments if segment not in ('', '.', '..')]


def inherited_names(content: str):
    """Yield ``(keyword, name, offset)`` for every base named in the text."""
    for keyword, pattern in (('extends', EXTENDS_CLAUSE), ('implements', IMPLEMENTS_CLAUSE)):
        for match in pattern.finditer(content):
            clause = GENERIC_ARGUMENTS.sub('', match.group(1))
            for name in clause.split(','):
                name = name.strip().split('.')[-1]
                if name:
                    yield keyword, name, match.start()
    for match in PYTHON_BASES.finditer(content):
        for base in match.group(1).split(','):
            base = base.strip()
            if not base or '=' in base:
                continue
            name = GENERIC_ARGUMENTS.sub('', base).split('[')[0].split('.')[-1].strip()
            if name and name not in IGNORED_BASES:
                yield 'extends', name, match.start()


@dataclass
class RelationshipAnalysisConfig:
    min_confidence_threshold: float = 0.3
    max_similarity_distance: float = 0.7
    enabled_analysis: Dict[str, bool] = field(
        default_factory=lambda: {name: True for name in ANALYSIS_TYPES}
    )

    def enabled(self, analysis: str) -> bool:
        return self.enabled_analysis.get(analysis, False)


@dataclass
class ChunkAnalysisResult:
    chunk_id: str
    relationships: List[ChunkRelationship]
    analysis_time: float
    confidence_score: float
    analysis_types: List[str]
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'chunk_id': self.chunk_id,
            'relationships': [rel.to_dict() for rel in self.relationships],
            'analysis_time': self.analysis_time,
            'confidence_score': self.confidence_score,
            'analysis_types': list(self.analysis_types),
            'warnings': list(self.warnings),
        }


@dataclass
class GraphEdge:
    source: str
    target: str
    relationship: ChunkRelationship


class RelationshipGraph:
    """Directed graph over chunk ids.

    An ``outgoing`` or ``bidirectional`` edge stored on chunk ``u`` becomes
    ``u -> target``; an ``incoming`` edge becomes ``target -> u``.
    """

    def __init__(self):
        self.nodes: List[str] = []
        self.edges: List[GraphEdge] = []
        self.adjacency: Dict[str, List[str]] = {}
        self.reverse_adjacency: Dict[str, List[str]] = {}

    def add_node(self, chunk_id: str):
        if chunk_id not in self.adjacency:
            self.nodes.append(chunk_id)
            self.adjacency[chunk_id] = []
            self.reverse_adjacency[chunk_id] = []

    def add_edge(self, source: str, target: str, relationship: ChunkRelationship):
        if source not in self.adjacency or target not in self.adjacency:
            return
        self.edges.append(GraphEdge(source, target, relationship))
        if target not in self.adjacency[source]:
            self.adjacency[source].append(target)
        if source not in self.reverse_adjacency[target]:
            self.reverse_adjacency[target].append(source)

    @classmethod
    def build(cls, chunks: List[EnhancedChunk],
              relationships: List[List[ChunkRelationship]]) -> 'RelationshipGraph':
        graph = cls()
        for chunk in chunks:
            graph.add_node(chunk.id)
        for chunk, edges in zip(chunks, relationships):
            for rel in edges:
                if rel.direction == 'incoming':
                    graph.add_edge(rel.target_chunk_id, chunk.id, rel)
                else:
                    graph.add_edge(chunk.id, rel.target_chunk_id, rel)
        return graph

    def statistics(self) -> Dict:
        """Node count, edge count and degree statistics."""
        if not self.nodes:
            return {'node_count': 0, 'edge_count': 0, 'average_degree': 0.0, 'max_degree': 0}
        degrees = np.array([
            len(self.adjacency[node]) + len(self.reverse_adjacency[node])
            for node in self.nodes
        ])
        return {
            'node_count': len(self.nodes),
            'edge_count': len(self.edges),
            'average_degree': float(np.mean(degrees)),
            'max_degree': int(np.max(degrees)),
        }


@dataclass
class BatchRelationshipResult:
    chunk_results: List[ChunkAnalysisResult]
    graph: RelationshipGraph
    summary: Dict

    @property
    def relationships(self) -> List[List[ChunkRelationship]]:
        return [result.relationships for result in self.chunk_results]


class ChunkIndex:
    """Per-batch lookup tables shared by every pass."""

    def __init__(self, chunks: List[EnhancedChunk]):
        self.chunks = chunks
        self.symbol_index: Dict[str, List[int]] = defaultdict(list)
        self.files: Dict[str, List[int]] = defaultdict(list)
        self.identifiers: List[Set[str]] = []
        self.words: List[Set[str]] = []
        self.is_test: List[bool] = []

        for position, chunk in enumerate(chunks):
            for symbol in chunk.symbols:
                if position not in self.symbol_index[symbol]:
                    self.symbol_index[symbol].append(position)
            self.files[chunk.file_path].append(position)
            self.identifiers.append(set(IDENTIFIER.findall(chunk.content)))
            self.words.append(set(WORD.findall(chunk.content.lower())))
            self.is_test.append(
                is_test_path(chunk.file_path) or bool(TEST_MARKERS.search(chunk.content))
            )

        for positions in self.files.values():
            positions.sort(key=lambda p: (chunks[p].start_line, chunks[p].end_line))

    def position(self, chunk: EnhancedChunk) -> Optional[int]:
        for position, candidate in enumerate(self.chunks):
            if candidate is chunk or candidate.id == chunk.id:
                return position
        return None

    def referenced_symbols(self, position: int):
        """Declared names of other chunks that this chunk mentions, in sorted order."""
        own = set(self.chunks[position].symbols)
        names = self.identifiers[position] & self.symbol_index.keys()
        return sorted(name for name in names if name not in own)

    def declarers(self, symbol: str, exclude: int) -> List[int]:
        return [p for p in self.symbol_index.get(symbol, []) if p != exclude]


class RelationshipAnalyzer:
    """Finds relationships between the chunks of a file or batch."""

    def __init__(self, config: Optional[RelationshipAnalysisConfig] = None):
        self.config = config or RelationshipAnalysisConfig()

    def analyze_chunk(self, chunk: EnhancedChunk,
                      all_chunks: List[EnhancedChunk]) -> List[ChunkRelationship]:
        """Relationships of one chunk against a sibling set.

        Args:
            chunk: Chunk to analyze
            all_chunks: Sibling chunks; ``chunk`` is added when absent

        Returns:
            Edges above the confidence threshold, duplicates removed
        """
        index = ChunkIndex(all_chunks)
        position = index.position(chunk)
        if position is None:
            index = ChunkIndex(list(all_chunks) + [chunk])
            position = len(all_chunks)
        return self._analyze(index, position)

    def analyze(self, chunks: List[EnhancedChunk]) -> List[List[ChunkRelationship]]:
        """Edges for every chunk of a batch, in chunk order."""
        index = ChunkIndex(chunks)
        return [self._analyze(index, position) for position in range(len(chunks))]

    def analyze_batch(self, chunks: List[EnhancedChunk]) -> BatchRelationshipResult:
        """Analyze a batch and build its relationship graph and summary.

        Args:
            chunks: Chunks of one file or batch

        Returns:
            BatchRelationshipResult with per-chunk results, graph and summary
        """
        started = time.perf_counter()
        index = ChunkIndex(chunks)
        analysis_types = [name for name in ANALYSIS_TYPES if self.config.enabled(name)]

        results = []
        for position, chunk in enumerate(chunks):
            chunk_started = time.perf_counter()
            edges = self._analyze(index, position)
            warnings = []
            if not chunk.symbols:
                warnings.append('No declared symbols; other chunks cannot reference this chunk by name')
            confidence = float(np.mean([rel.metadata.confidence for rel in edges])) if edges else 0.0
            results.append(ChunkAnalysisResult(
                chunk_id=chunk.id,
                relationships=edges,
                analysis_time=time.perf_counter() - chunk_started,
                confidence_score=round(confidence, 4),
                analysis_types=analysis_types,
                warnings=warnings,
            ))

        graph = RelationshipGraph.build(chunks, [result.relationships for result in results])
        all_edges = [rel for result in results for rel in result.relationships]
        summary = {
            'total_chunks': len(chunks),
            'total_relationships': len(all_edges),
            'average_confidence': (
                round(float(np.mean([rel.metadata.confidence for rel in all_edges])), 4)
                if all_edges else 0.0
            ),
            'analysis_time': time.perf_counter() - started,
            'relationship_types': dict(Counter(rel.type for rel in all_edges)),
        }
        logger.info(
            f"Relationship analysis: {summary['total_relationships']} edges "
            f"across {summary['total_chunks']} chunks"
        )
        return BatchRelationshipResult(chunk_results=results, graph=graph, summary=summary)

    def _analyze(self, index: ChunkIndex, position: int) -> List[ChunkRelationship]:
        passes = (
            ('imports', self._import_relationships),
            ('calls', self._call_relationships),
            ('inheritance', self._inheritance_relationships),
            ('usage', self._usage_relationships),
            ('tests', self._test_relationships),
            ('similarity', self._similarity_relationships),
        )
        found: List[ChunkRelationship] = []
        for name, analysis in passes:
            if self.config.enabled(name):
                found.extend(analysis(index, position))

        kept = []
        seen = set()
        for rel in found:
            if rel.metadata.confidence < self.config.min_confidence_threshold:
                continue
            if rel.key() in seen:
                continue
            seen.add(rel.key())
            kept.append(rel)
        return kept

    def _call_relationships(self, index: ChunkIndex, position: int) -> List[ChunkRelationship]:
        chunk = index.chunks[position]
        calls: Dict[int, List] = {}
        for symbol in index.referenced_symbols(position):
            matches = list(call_pattern(symbol).finditer(chunk.content))
            if not matches:
                continue
            for target in index.declarers(symbol, position):
                calls.setdefault(target, []).append((symbol, matches))

        relationships = []
        for target in sorted(calls):
            target_chunk = index.chunks[target]
            names = [symbol for symbol, _ in calls[target]]
            count = sum(len(matches) for _, matches in calls[target])
            first = min(matches[0].start() for _, matches in calls[target])
            relationships.append(ChunkRelationship.create(
                'calls', target_chunk.id, min(1.0, count * 0.2),
                f"Calls {', '.join(names)} from {target_chunk.file_path}",
                confidence=0.8, source='static_analysis', line_number=line_of(chunk, first),
            ))
        return relationships

    def _usage_relationships(self, index: ChunkIndex, position: int) -> List[ChunkRelationship]:
        chunk = index.chunks[position]
        usages: Dict[int, List] = {}
        for symbol in index.referenced_symbols(position):
            matches = list(usage_pattern(symbol).finditer(chunk.content))
            if not matches:
                continue
            for target in index.declarers(symbol, position):
                usages.setdefault(target, []).append((symbol, matches))

        relationships = []
        for target in sorted(usages):
            target_chunk = index.chunks[target]
            names = [symbol for symbol, _ in usages[target]]
            count = sum(len(matches) for _, matches in usages[target])
            first = min(matches[0].start() for _, matches in usages[target])
            relationships.append(ChunkRelationship.create(
                'uses', target_chunk.id, min(0.8, count * 0.1),
                f"Uses {', '.join(names)}",
                confidence=0.7, source='static_analysis', line_number=line_of(chunk, first),
            ))
        return relationships

    def _import_relationships(self, index: ChunkIndex, position: int) -> List[ChunkRelationship]:
        chunk = index.chunks[position]
        relationships = []
        for import_path in extract_dependencies(chunk.content, chunk.language):
            segments = import_segments(import_path)
            if not segments:
                continue
            for file_path, positions in index.files.items():
                if file_path == chunk.file_path or not self._import_matches(segments, file_path):
                    continue
                mentioned = [
                    p for p in positions
                    if index.identifiers[position] & set(index.chunks[p].symbols)
                ]
                for target in mentioned or positions[:1]:
                    relationships.append(ChunkRelationship.create(
                        'imports', index.chunks[target].id, 0.8, f"Imports {import_path}",
                        confidence=0.8, source='static_analysis',
                        line_number=line_of(chunk, max(0, chunk.content.find(import_path))),
                    ))
        return relationships

    @staticmethod
    def _import_matches(segments: List[str], file_path: str) -> bool:
        path = PurePosixPath(file_path.replace('\\', '/'))
        without_suffix = path.with_suffix('').as_posix()
        if path.stem == segments[-1]:
            return True
        if without_suffix.endswith('/'.join(segments)):
            return True
        directories = [part for part in path.parent.parts if part not in ('', '.', '/')]
        return len(segments) == 1 and segments[0] in directories

    def _inheritance_relationships(self, index: ChunkIndex, position: int) -> List[ChunkRelationship]:
        chunk = index.chunks[position]
        own = set(chunk.symbols)
        relationships = []
        for keyword, name, offset in inherited_names(chunk.content):
            if name in own:
                continue
            for target in index.declarers(name, position):
                target_chunk = index.chunks[target]
                if keyword == 'implements' and target_chunk.metadata.semantic_type == 'interface':
                    relationships.append(ChunkRelationship.create(
                        'implements', target_chunk.id, 0.8, f"Implements {name}",
                        confidence=0.8, source='static_analysis', line_number=line_of(chunk, offset),
                    ))
                else:
                    relationships.append(ChunkRelationship.create(
                        'extends', target_chunk.id, 0.9, f"Extends {name}",
                        confidence=0.9, source='static_analysis', line_number=line_of(chunk, offset),
                    ))
        return relationships

    def _test_relationships(self, index: ChunkIndex, position: int) -> List[ChunkRelationship]:
        chunk = index.chunks[position]
        relationships = []
        if index.is_test[position]:
            targets = set()
            for symbol in index.referenced_symbols(position):
                targets.update(p for p in index.declarers(symbol, position) if not index.is_test[p])
            for target in sorted(targets):
                target_chunk = index.chunks[target]
                relationships.append(ChunkRelationship.create(
                    'tests', target_chunk.id, 0.7, f"Tests {', '.join(target_chunk.symbols)}",
                    confidence=0.7, source='heuristic',
                ))
            return relationships

        own = set(chunk.symbols)
        if not own:
            return relationships
        for other, is_test in enumerate(index.is_test):
            if other == position or not is_test:
                continue
            if own & index.identifiers[other]:
                relationships.append(ChunkRelationship.create(
                    'tests', index.chunks[other].id, 0.7, f"Tested by {index.chunks[other].file_path}",
                    direction='incoming', confidence=0.7, source='heuristic',
                ))
        return relationships

    def _similarity_relationships(self, index: ChunkIndex, position: int) -> List[ChunkRelationship]:
        chunk = index.chunks[position]
        symbols = set(chunk.symbols)
        relationships = []
        for other, other_chunk in enumerate(index.chunks):
            if other == position:
                continue
            score = 0.0
            if chunk.metadata.semantic_type == other_chunk.metadata.semantic_type:
                score += 0.3
            if chunk.language == other_chunk.language:
                score += 0.2
            score += jaccard(symbols, set(other_chunk.symbols)) * 0.3
            score += jaccard(index.words[position], index.words[other]) * 0.2
            if score > self.config.max_similarity_distance:
                relationships.append(ChunkRelationship.create(
                    'similar_to', other_chunk.id, score, f"Similar to {other_chunk.id}",
                    direction='bidirectional', confidence=score, source='semantic',
                ))
        return relationships
