"""Chunk data model shared by the chunking and analysis packages."""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set


SEMANTIC_TYPES = (
    'function', 'class', 'interface', 'type', 'enum', 'module', 'config',
    'test', 'documentation', 'constant', 'utility', 'component', 'service',
    'model', 'controller', 'middleware', 'route', 'schema', 'migration',
    'fixture', 'script', 'other',
)

RELATIONSHIP_TYPES = (
    'calls', 'imports', 'extends', 'implements', 'uses', 'tests', 'mocks',
    'configures', 'depends_on', 'similar_to', 'overrides', 'decorates',
    'composes', 'aggregates',
)

RELATIONSHIP_DIRECTIONS = ('outgoing', 'incoming', 'bidirectional')

RELATIONSHIP_SOURCES = ('ast', 'static_analysis', 'semantic', 'heuristic')

ARCHITECTURAL_LAYERS = (
    'presentation', 'business', 'data', 'service', 'infrastructure', 'test',
    'configuration', 'unknown',
)

DEBT_SEVERITIES = ('low', 'medium', 'high', 'critical')

DEBT_CATEGORIES = (
    'code_smells', 'security_vulnerabilities', 'performance_issues',
    'maintainability_issues', 'documentation_gaps', 'test_coverage_gaps',
    'architectural_violations', 'style_violations',
)

_ID_UNSAFE = re.compile(r'[^a-zA-Z0-9_.-]')


def make_chunk_id(snapshot_id: str, file_path: str, start_line: int, end_line: int,
                  suffix: str = '') -> str:
    """Build a chunk identity from snapshot, file name and line range."""
    raw = f"{snapshot_id}_{Path(file_path).name}_{start_line}-{end_line}{suffix}"
    return _ID_UNSAFE.sub('_', raw)


def unique_chunk_id(chunk_id: str, seen: Set[str]) -> str:
    """Suffix ``chunk_id`` until it is not in ``seen``, then record it."""
    candidate = chunk_id
    n = 1
    while candidate in seen:
        candidate = f"{chunk_id}_{n}"
        n += 1
    seen.add(candidate)
    return candidate


def split_lines(content: str) -> List[str]:
    """Split source text into lines; the line count used everywhere."""
    return content.split('\n')


@dataclass
class CodeChunk:
    """A contiguous 0-based, inclusive line range of one file."""

    id: str
    content: str
    file_path: str
    start_line: int
    end_line: int
    snapshot_id: str
    language: str
    symbols: List[str] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    comment_ratio: Optional[float] = None
    complexity: Optional[float] = None

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'content': self.content,
            'file_path': self.file_path,
            'start_line': self.start_line,
            'end_line': self.end_line,
            'snapshot_id': self.snapshot_id,
            'language': self.language,
            'symbols': list(self.symbols),
            'imports': list(self.imports),
            'comment_ratio': self.comment_ratio,
            'complexity': self.complexity,
        }


@dataclass
class LinesOfCode:
    """Line breakdown where mixed lines count as both code and comment.

    ``total == code + comments + blank - mixed`` always holds.
    """

    total: int = 0
    code: int = 0
    comments: int = 0
    blank: int = 0
    mixed: int = 0

    @property
    def logical(self) -> int:
        return self.code

    @classmethod
    def count(cls, content: str) -> 'LinesOfCode':
        """Count lines by category.

        Args:
            content: Chunk text

        Returns:
            LinesOfCode for the text
        """
        loc = cls()
        for line in split_lines(content):
            loc.total += 1
            trimmed = line.strip()
            if not trimmed:
                loc.blank += 1
            elif trimmed.startswith(('//', '#', '/*', '*')):
                loc.comments += 1
            else:
                loc.code += 1
                if '//' in trimmed or '#' in trimmed:
                    loc.mixed += 1
                    loc.comments += 1
        return loc

    def to_dict(self) -> Dict[str, int]:
        return {
            'total': self.total,
            'code': self.code,
            'comments': self.comments,
            'blank': self.blank,
            'mixed': self.mixed,
            'logical': self.logical,
        }


@dataclass
class EnhancedMetadata:
    """Semantic facets computed for one chunk."""

    language: str
    semantic_type: str = 'module'
    symbols: List[str] = field(default_factory=list)
    complexity_score: float = 1.0
    maintainability_index: float = 50.0
    dependencies: List[str] = field(default_factory=list)
    dependents: List[str] = field(default_factory=list)
    design_patterns: List[str] = field(default_factory=list)
    code_smells: List[str] = field(default_factory=list)
    security_concerns: List[str] = field(default_factory=list)
    lines_of_code: LinesOfCode = field(default_factory=LinesOfCode)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'language': self.language,
            'semantic_type': self.semantic_type,
            'symbols': list(self.symbols),
            'complexity_score': self.complexity_score,
            'maintainability_index': self.maintainability_index,
            'dependencies': list(self.dependencies),
            'dependents': list(self.dependents),
            'design_patterns': list(self.design_patterns),
            'code_smells': list(self.code_smells),
            'security_concerns': list(self.security_concerns),
            'lines_of_code': self.lines_of_code.to_dict(),
        }


@dataclass
class RelationshipMetadata:
    confidence: float
    source: str
    line_number: Optional[int] = None
    context: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'confidence': self.confidence,
            'source': self.source,
            'line_number': self.line_number,
            'context': self.context,
        }


@dataclass
class ChunkRelationship:
    """An edge from the owning chunk to ``target_chunk_id``."""

    type: str
    target_chunk_id: str
    strength: float
    description: str
    direction: str
    metadata: RelationshipMetadata

    @classmethod
    def create(cls, type: str, target_chunk_id: str, strength: float, description: str,
               direction: str = 'outgoing', confidence: float = 0.5, source: str = 'static_analysis',
               line_number: Optional[int] = None, context: Optional[str] = None) -> 'ChunkRelationship':
        """Build an edge with strength and confidence clamped to [0, 1]."""
        return cls(
            type=type,
            target_chunk_id=target_chunk_id,
            strength=round(clamp_unit(strength), 4),
            description=description,
            direction=direction,
            metadata=RelationshipMetadata(
                confidence=round(clamp_unit(confidence), 4),
                source=source,
                line_number=line_number,
                context=context,
            ),
        )

    def key(self):
        """Identity used to drop duplicate edges."""
        return (self.type, self.target_chunk_id, self.direction)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'target_chunk_id': self.target_chunk_id,
            'strength': self.strength,
            'description': self.description,
            'direction': self.direction,
            'metadata': self.metadata.to_dict(),
        }


@dataclass
class DebtIssue:
    category: str
    description: str
    severity: str
    suggestion: Optional[str] = None
    line_number: Optional[int] = None
    estimated_effort: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'description': self.description,
            'severity': self.severity,
            'suggestion': self.suggestion,
            'line_number': self.line_number,
            'estimated_effort': self.estimated_effort,
        }


@dataclass
class TechnicalDebt:
    estimated_fix_time: float = 0.0  # hours
    severity: str = 'low'
    categories: List[str] = field(default_factory=list)
    issues: List[DebtIssue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'estimated_fix_time': self.estimated_fix_time,
            'severity': self.severity,
            'categories': list(self.categories),
            'issues': [issue.to_dict() for issue in self.issues],
        }


@dataclass
class QualityMetrics:
    """Scores on a 0-100 scale except ``documentation_ratio`` and ``test_coverage`` (0-1)."""

    overall_score: float = 50.0
    readability_score: float = 50.0
    documentation_ratio: float = 0.0
    duplication_risk: float = 0.0
    performance_risk: float = 0.0
    security_risk: float = 0.0
    maintainability_score: float = 50.0
    technical_debt: TechnicalDebt = field(default_factory=TechnicalDebt)
    test_coverage: Optional[float] = None
    style_compliance_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall_score': self.overall_score,
            'readability_score': self.readability_score,
            'documentation_ratio': self.documentation_ratio,
            'duplication_risk': self.duplication_risk,
            'performance_risk': self.performance_risk,
            'security_risk': self.security_risk,
            'maintainability_score': self.maintainability_score,
            'technical_debt': self.technical_debt.to_dict(),
            'test_coverage': self.test_coverage,
            'style_compliance_score': self.style_compliance_score,
        }


@dataclass
class FileContext:
    total_lines: int
    file_size: int
    sibling_chunks: List[str] = field(default_factory=list)
    last_modified: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_lines': self.total_lines,
            'file_size': self.file_size,
            'sibling_chunks': list(self.sibling_chunks),
            'last_modified': self.last_modified,
        }


@dataclass
class ContextInfo:
    surrounding_context: str
    architectural_layer: str
    file_context: FileContext
    framework_context: List[str] = field(default_factory=list)
    business_context: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'surrounding_context': self.surrounding_context,
            'architectural_layer': self.architectural_layer,
            'framework_context': list(self.framework_context),
            'business_context': self.business_context,
            'file_context': self.file_context.to_dict(),
        }


@dataclass
class EnhancedChunk:
    """A chunk with metadata, relationships, quality metrics and context."""

    chunk: CodeChunk
    metadata: EnhancedMetadata
    relationships: List[ChunkRelationship] = field(default_factory=list)
    quality: QualityMetrics = field(default_factory=QualityMetrics)
    context: Optional[ContextInfo] = None

    @property
    def id(self) -> str:
        return self.chunk.id

    @property
    def content(self) -> str:
        return self.chunk.content

    @property
    def file_path(self) -> str:
        return self.chunk.file_path

    @property
    def start_line(self) -> int:
        return self.chunk.start_line

    @property
    def end_line(self) -> int:
        return self.chunk.end_line

    @property
    def language(self) -> str:
        return self.chunk.language

    @property
    def symbols(self) -> List[str]:
        return self.metadata.symbols or self.chunk.symbols

    def to_dict(self) -> Dict[str, Any]:
        data = self.chunk.to_dict()
        data.update({
            'enhanced_metadata': self.metadata.to_dict(),
            'relationships': [rel.to_dict() for rel in self.relationships],
            'quality_metrics': self.quality.to_dict(),
            'context_info': self.context.to_dict() if self.context else None,
        })
        return data


def clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def clamp_score(value: float) -> float:
    return max(0.0, min(100.0, float(value)))
