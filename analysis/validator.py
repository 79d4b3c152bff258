"""Schema and range checks for enhanced chunks.

Validation is advisory: every check appends a finding and nothing is raised,
so a caller can log or display the report and keep the chunks.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from chunking.models import (
    ARCHITECTURAL_LAYERS,
    DEBT_CATEGORIES,
    DEBT_SEVERITIES,
    RELATIONSHIP_DIRECTIONS,
    RELATIONSHIP_SOURCES,
    RELATIONSHIP_TYPES,
    SEMANTIC_TYPES,
    EnhancedChunk,
)

logger = logging.getLogger(__name__)

LARGE_CHUNK_CHARS = 10000
LARGE_LINE_RANGE = 500
HIGH_COMPLEXITY = 80
LOW_MAINTAINABILITY = 20
HIGH_RISK = 70

SCORE_FIELDS = (
    'overall_score', 'readability_score', 'duplication_risk', 'performance_risk',
    'security_risk', 'maintainability_score',
)
LOC_FIELDS = ('total', 'code', 'comments', 'blank', 'mixed')
LIST_FIELDS = {
    'dependencies': 'INVALID_DEPENDENCIES',
    'dependents': 'INVALID_DEPENDENTS',
    'design_patterns': 'INVALID_DESIGN_PATTERNS',
    'code_smells': 'INVALID_CODE_SMELLS',
    'security_concerns': 'INVALID_SECURITY_CONCERNS',
}


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float, np.number)) and not isinstance(value, bool)


def in_range(value: Any, low: float, high: float) -> bool:
    return is_number(value) and low <= value <= high


@dataclass
class ValidationError:
    code: str
    message: str
    field: str
    severity: str = 'error'

    def to_dict(self) -> Dict[str, Any]:
        return {'code': self.code, 'message': self.message, 'field': self.field, 'severity': self.severity}


@dataclass
class ValidationWarning:
    code: str
    message: str
    field: str
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'code': self.code, 'message': self.message, 'field': self.field, 'suggestion': self.suggestion}


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)
    score: float = 100.0
    chunk_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'chunk_id': self.chunk_id,
            'is_valid': self.is_valid,
            'errors': [error.to_dict() for error in self.errors],
            'warnings': [warning.to_dict() for warning in self.warnings],
            'score': self.score,
        }


class _Findings:
    def __init__(self):
        self.errors: List[ValidationError] = []
        self.warnings: List[ValidationWarning] = []

    def error(self, code: str, message: str, field_path: str):
        self.errors.append(ValidationError(code, message, field_path))

    def warn(self, code: str, message: str, field_path: str, suggestion: Optional[str] = None):
        self.warnings.append(ValidationWarning(code, message, field_path, suggestion))


class MetadataValidator:
    """Validates the structure and value ranges of enhanced chunks."""

    def validate(self, chunk: EnhancedChunk) -> ValidationResult:
        """Validate one enhanced chunk.

        Args:
            chunk: Chunk to check

        Returns:
            ValidationResult; ``score`` is 100 minus 10 per error and 2 per
            warning, floored at 0
        """
        findings = _Findings()
        self._validate_base(chunk, findings)
        self._validate_metadata(chunk, findings)
        self._validate_relationships(chunk, findings)
        self._validate_quality(chunk, findings)
        self._validate_context(chunk, findings)

        score = max(0, 100 - 10 * len(findings.errors) - 2 * len(findings.warnings))
        if findings.errors:
            logger.debug(f"Validation found {len(findings.errors)} errors: {[e.code for e in findings.errors]}")
        return ValidationResult(
            is_valid=not findings.errors,
            errors=findings.errors,
            warnings=findings.warnings,
            score=float(score),
            chunk_id=getattr(getattr(chunk, 'chunk', None), 'id', None),
        )

    def validate_batch(self, chunks: List[EnhancedChunk]) -> List[ValidationResult]:
        return [self.validate(chunk) for chunk in chunks]

    @staticmethod
    def batch_summary(results: List[ValidationResult]) -> Dict[str, Any]:
        """Aggregate a batch of validation results.

        Args:
            results: Results from ``validate_batch``

        Returns:
            Dictionary with totals, average score and the most common codes
        """
        error_counts = Counter(error.code for result in results for error in result.errors)
        warning_counts = Counter(warning.code for result in results for warning in result.warnings)
        valid = sum(1 for result in results if result.is_valid)
        return {
            'total_chunks': len(results),
            'valid_chunks': valid,
            'invalid_chunks': len(results) - valid,
            'average_score': float(np.mean([result.score for result in results])) if results else 0.0,
            'common_errors': [code for code, _ in error_counts.most_common(5)],
            'common_warnings': [code for code, _ in warning_counts.most_common(5)],
        }

    def _validate_base(self, chunk: EnhancedChunk, findings: _Findings):
        base = getattr(chunk, 'chunk', None)
        if base is None:
            findings.error('MISSING_ID', 'Chunk record is missing', 'chunk')
            return

        if not isinstance(base.id, str) or not base.id:
            findings.error('MISSING_ID', 'Chunk ID is required and must be a string', 'id')
        if not isinstance(base.content, str):
            findings.error('MISSING_CONTENT', 'Chunk content is required and must be a string', 'content')
        if not isinstance(base.file_path, str) or not base.file_path:
            findings.error('MISSING_FILE_PATH', 'File path is required and must be a string', 'file_path')

        start_ok = is_number(base.start_line) and base.start_line >= 0
        if not start_ok:
            findings.error('INVALID_START_LINE', 'Start line must be a non-negative number', 'start_line')
        if not is_number(base.end_line) or (start_ok and base.end_line < base.start_line):
            findings.error('INVALID_END_LINE', 'End line must be a number >= start line', 'end_line')

        if isinstance(base.content, str) and len(base.content) > LARGE_CHUNK_CHARS:
            findings.warn('LARGE_CHUNK', 'Chunk content is very large (>10k characters)', 'content',
                          'Consider splitting into smaller chunks')
        if start_ok and is_number(base.end_line) and base.end_line - base.start_line > LARGE_LINE_RANGE:
            findings.warn('LARGE_LINE_RANGE', 'Chunk spans a very large number of lines (>500)', 'end_line',
                          'Consider splitting into smaller chunks')

    def _validate_metadata(self, chunk: EnhancedChunk, findings: _Findings):
        metadata = getattr(chunk, 'metadata', None)
        if metadata is None:
            findings.error('MISSING_ENHANCED_METADATA', 'Enhanced metadata is required', 'enhanced_metadata')
            return

        if metadata.semantic_type not in SEMANTIC_TYPES:
            findings.error('INVALID_SEMANTIC_TYPE', f"Invalid semantic type: {metadata.semantic_type}",
                           'enhanced_metadata.semantic_type')
        if not in_range(metadata.complexity_score, 0, 100):
            findings.error('INVALID_COMPLEXITY_SCORE', 'Complexity score must be a number between 0 and 100',
                           'enhanced_metadata.complexity_score')
        if not in_range(metadata.maintainability_index, 0, 100):
            findings.error('INVALID_MAINTAINABILITY_INDEX',
                           'Maintainability index must be a number between 0 and 100',
                           'enhanced_metadata.maintainability_index')

        for name, code in LIST_FIELDS.items():
            if not isinstance(getattr(metadata, name, None), list):
                findings.error(code, f"{name} must be a list", f"enhanced_metadata.{name}")

        loc = metadata.lines_of_code
        if loc is None:
            findings.error('MISSING_LINES_OF_CODE', 'Lines of code metrics are required',
                           'enhanced_metadata.lines_of_code')
        else:
            self._validate_lines_of_code(loc, findings)

        if is_number(metadata.complexity_score) and metadata.complexity_score > HIGH_COMPLEXITY:
            findings.warn('HIGH_COMPLEXITY', 'Chunk has very high complexity',
                          'enhanced_metadata.complexity_score', 'Consider breaking down into smaller functions')
        if is_number(metadata.maintainability_index) and metadata.maintainability_index < LOW_MAINTAINABILITY:
            findings.warn('LOW_MAINTAINABILITY', 'Chunk has low maintainability',
                          'enhanced_metadata.maintainability_index', 'Consider refactoring')

    @staticmethod
    def _validate_lines_of_code(loc, findings: _Findings):
        values = {}
        for name in LOC_FIELDS:
            value = getattr(loc, name, None)
            if not is_number(value) or value < 0:
                findings.error('INVALID_LOC_METRIC', f"Lines of code metric '{name}' must be a non-negative number",
                               f"enhanced_metadata.lines_of_code.{name}")
            else:
                values[name] = value
        if len(values) == len(LOC_FIELDS):
            if values['total'] != values['code'] + values['comments'] + values['blank'] - values['mixed']:
                findings.warn('INCONSISTENT_LOC_METRICS', 'Lines of code metrics may be inconsistent',
                              'enhanced_metadata.lines_of_code',
                              'Verify that total = code + comments + blank - mixed')

    @staticmethod
    def _validate_relationships(chunk: EnhancedChunk, findings: _Findings):
        relationships = getattr(chunk, 'relationships', None)
        if not isinstance(relationships, list):
            findings.error('INVALID_RELATIONSHIPS', 'Relationships must be a list', 'relationships')
            return

        for index, rel in enumerate(relationships):
            prefix = f"relationships[{index}]"
            rel_type = getattr(rel, 'type', None)
            if rel_type not in RELATIONSHIP_TYPES:
                findings.error('INVALID_RELATIONSHIP_TYPE', f"Invalid relationship type: {rel_type}", f"{prefix}.type")
            target = getattr(rel, 'target_chunk_id', None)
            if not isinstance(target, str) or not target:
                findings.error('MISSING_TARGET_CHUNK_ID', 'Target chunk ID is required and must be a string',
                               f"{prefix}.target_chunk_id")
            if not in_range(getattr(rel, 'strength', None), 0, 1):
                findings.error('INVALID_RELATIONSHIP_STRENGTH', 'Relationship strength must be between 0 and 1',
                               f"{prefix}.strength")
            if getattr(rel, 'direction', None) not in RELATIONSHIP_DIRECTIONS:
                findings.error('INVALID_RELATIONSHIP_DIRECTION', 'Invalid relationship direction',
                               f"{prefix}.direction")
            metadata = getattr(rel, 'metadata', None)
            if metadata is None:
                continue
            if not in_range(getattr(metadata, 'confidence', None), 0, 1):
                findings.error('INVALID_RELATIONSHIP_CONFIDENCE', 'Relationship confidence must be between 0 and 1',
                               f"{prefix}.metadata.confidence")
            if getattr(metadata, 'source', None) not in RELATIONSHIP_SOURCES:
                findings.error('INVALID_RELATIONSHIP_SOURCE', 'Invalid relationship source',
                               f"{prefix}.metadata.source")

    @staticmethod
    def _validate_quality(chunk: EnhancedChunk, findings: _Findings):
        quality = getattr(chunk, 'quality', None)
        if quality is None:
            findings.error('MISSING_QUALITY_METRICS', 'Quality metrics are required', 'quality_metrics')
            return

        for name in SCORE_FIELDS:
            value = getattr(quality, name, None)
            if not is_number(value):
                findings.error('INVALID_QUALITY_METRIC', f"Quality metric '{name}' must be a number",
                               f"quality_metrics.{name}")
            elif not 0 <= value <= 100:
                findings.error('INVALID_QUALITY_SCORE', f"Quality metric '{name}' must be between 0 and 100",
                               f"quality_metrics.{name}")
        if not in_range(getattr(quality, 'documentation_ratio', None), 0, 1):
            findings.error('INVALID_DOCUMENTATION_RATIO', 'Documentation ratio must be between 0 and 1',
                           'quality_metrics.documentation_ratio')
        coverage = getattr(quality, 'test_coverage', None)
        if coverage is not None and not in_range(coverage, 0, 1):
            findings.error('INVALID_TEST_COVERAGE', 'Test coverage must be between 0 and 1',
                           'quality_metrics.test_coverage')
        style = getattr(quality, 'style_compliance_score', None)
        if style is not None and not in_range(style, 0, 100):
            findings.error('INVALID_QUALITY_SCORE', "Quality metric 'style_compliance_score' must be between 0 and 100",
                           'quality_metrics.style_compliance_score')

        debt = getattr(quality, 'technical_debt', None)
        if debt is None:
            findings.error('MISSING_TECHNICAL_DEBT', 'Technical debt metrics are required',
                           'quality_metrics.technical_debt')
        else:
            fix_time = getattr(debt, 'estimated_fix_time', None)
            if not is_number(fix_time) or fix_time < 0:
                findings.error('INVALID_ESTIMATED_FIX_TIME', 'Estimated fix time must be a non-negative number',
                               'quality_metrics.technical_debt.estimated_fix_time')
            if getattr(debt, 'severity', None) not in DEBT_SEVERITIES:
                findings.error('INVALID_DEBT_SEVERITY', 'Invalid technical debt severity',
                               'quality_metrics.technical_debt.severity')
            categories = getattr(debt, 'categories', None)
            if not isinstance(categories, list):
                findings.error('INVALID_DEBT_CATEGORIES', 'Technical debt categories must be a list',
                               'quality_metrics.technical_debt.categories')
            else:
                for index, category in enumerate(categories):
                    if category not in DEBT_CATEGORIES:
                        findings.error('INVALID_DEBT_CATEGORY', f"Invalid technical debt category: {category}",
                                       f"quality_metrics.technical_debt.categories[{index}]")

        security_risk = getattr(quality, 'security_risk', None)
        if is_number(security_risk) and security_risk > HIGH_RISK:
            findings.warn('HIGH_SECURITY_RISK', 'Chunk has high security risk', 'quality_metrics.security_risk',
                          'Review security-sensitive code')
        performance_risk = getattr(quality, 'performance_risk', None)
        if is_number(performance_risk) and performance_risk > HIGH_RISK:
            findings.warn('HIGH_PERFORMANCE_RISK', 'Chunk has high performance risk',
                          'quality_metrics.performance_risk', 'Review loops and expensive calls')

    @staticmethod
    def _validate_context(chunk: EnhancedChunk, findings: _Findings):
        base = getattr(chunk, 'chunk', None)
        context = getattr(chunk, 'context', None)
        if context is None:
            findings.error('MISSING_CONTEXT_INFO', 'Context info is required', 'context_info')
            return

        layer = getattr(context, 'architectural_layer', None)
        if layer not in ARCHITECTURAL_LAYERS:
            findings.error('INVALID_ARCHITECTURAL_LAYER',
                           f"Invalid architectural layer: {layer}",
                           'context_info.architectural_layer')
        if not isinstance(getattr(context, 'framework_context', None), list):
            findings.error('INVALID_FRAMEWORK_CONTEXT', 'Framework context must be a list',
                           'context_info.framework_context')

        file_context = getattr(context, 'file_context', None)
        if file_context is None:
            findings.error('MISSING_FILE_CONTEXT', 'File context is required', 'context_info.file_context')
            return
        total_lines = getattr(file_context, 'total_lines', None)
        end_line = getattr(base, 'end_line', None)
        if not is_number(total_lines) or total_lines < 0:
            findings.error('INVALID_TOTAL_LINES', 'Total lines must be a non-negative number',
                           'context_info.file_context.total_lines')
        elif is_number(end_line) and end_line >= total_lines:
            findings.error('INVALID_END_LINE', 'End line must be within the file', 'end_line')
        file_size = getattr(file_context, 'file_size', None)
        if not is_number(file_size) or file_size < 0:
            findings.error('INVALID_FILE_SIZE', 'File size must be a non-negative number',
                           'context_info.file_context.file_size')
        if not isinstance(getattr(file_context, 'sibling_chunks', None), list):
            findings.error('INVALID_SIBLING_CHUNKS', 'Sibling chunks must be a list',
                           'context_info.file_context.sibling_chunks')
