"""Cross-chunk relationship, quality, context and validation analysis."""

from .context import ContextAnalyzer
from .quality import QualityConfig, QualityMetricsCalculator
from .relationships import (
    BatchRelationshipResult,
    RelationshipAnalysisConfig,
    RelationshipAnalyzer,
    RelationshipGraph,
)
from .validator import MetadataValidator, ValidationResult

__all__ = [
    'ContextAnalyzer',
    'QualityConfig',
    'QualityMetricsCalculator',
    'BatchRelationshipResult',
    'RelationshipAnalysisConfig',
    'RelationshipAnalyzer',
    'RelationshipGraph',
    'MetadataValidator',
    'ValidationResult',
]
