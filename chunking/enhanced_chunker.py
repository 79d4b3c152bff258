"""Top-level chunking pipeline: detect, chunk, enhance, optionally validate."""

import asyncio
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Union

from analysis.context import ContextAnalyzer
from analysis.quality import QualityMetricsCalculator
from analysis.relationships import RelationshipAnalysisConfig, RelationshipAnalyzer
from analysis.validator import MetadataValidator

from .code_chunker import CodeChunker
from .code_metrics import (
    comment_ratio,
    complexity_score,
    cyclomatic_complexity,
    detect_design_patterns,
    extract_dependencies,
    infer_semantic_type,
    maintainability_index,
)
from .config import ChunkingConfig
from .content_provider import ContentProvider
from .models import (
    ChunkRelationship,
    CodeChunk,
    ContextInfo,
    EnhancedChunk,
    EnhancedMetadata,
    FileContext,
    LinesOfCode,
    split_lines,
)
from .strategies import ChunkingStrategy, StrategyName, StrategySelector

logger = logging.getLogger(__name__)


def merge_unique(*groups: Iterable[str]) -> List[str]:
    """Concatenate while keeping only the first occurrence of each item."""
    merged: List[str] = []
    for group in groups:
        for item in group:
            if item not in merged:
                merged.append(item)
    return merged


def merge_relationships(*groups: Iterable[ChunkRelationship]) -> List[ChunkRelationship]:
    merged = []
    seen = set()
    for group in groups:
        for rel in group:
            if rel.key() not in seen:
                seen.add(rel.key())
                merged.append(rel)
    return merged


class EnhancedCodeChunker(CodeChunker):
    """Chunks files with the best applicable strategy and enriches every chunk.

    Any strategy failure, or a strategy that finds nothing, drops to
    fixed-size fallback windows; fallback chunks go through the same
    enhancement stage as strategy chunks.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None,
                 selector: Optional[StrategySelector] = None,
                 relationship_analyzer: Optional[RelationshipAnalyzer] = None,
                 quality_calculator: Optional[QualityMetricsCalculator] = None,
                 context_analyzer: Optional[ContextAnalyzer] = None,
                 validator: Optional[MetadataValidator] = None):
        """Initialize the pipeline.

        Args:
            config: Chunking configuration
            selector: Strategy registry, defaults to semantic, hierarchical, context-aware sized from config
            relationship_analyzer: Relationship pass, threshold taken from config by default
            quality_calculator: Quality metrics calculator
            context_analyzer: Context facet builder
            validator: Validator used when ``config.validate_output`` is set
        """
        super().__init__(config)
        self.selector = selector or StrategySelector(config=self.config)
        self.relationship_analyzer = relationship_analyzer or RelationshipAnalyzer(
            RelationshipAnalysisConfig(min_confidence_threshold=self.config.min_relationship_confidence)
        )
        self.quality_calculator = quality_calculator or QualityMetricsCalculator()
        self.context_analyzer = context_analyzer or ContextAnalyzer()
        self.validator = validator or MetadataValidator()

    def chunk(self, content: str, file_path: str, snapshot_id: str,
              strategy_name: Union[str, StrategyName, None] = None) -> List[EnhancedChunk]:
        """Chunk and enhance one file.

        Args:
            content: File content
            file_path: Path of the file
            snapshot_id: Snapshot the content belongs to
            strategy_name: Preferred strategy; ignored when not applicable

        Returns:
            Enhanced chunks with metadata, relationships, quality and context
        """
        if not content:
            return []

        language = self.detector.detect(file_path, content)
        strategy = self.selector.applicable(language, content, strategy_name)

        chunks: List[EnhancedChunk] = []
        if strategy is None:
            logger.debug(f"No strategy applies to {file_path} ({language}), using fallback chunks")
        else:
            chunks = self._run_strategy(strategy, content, file_path, snapshot_id)

        if not chunks:
            chunks = self.fallback_chunks(content, file_path, snapshot_id, language)

        enhanced = self.enhance_chunks(chunks, content)
        if self.config.validate_output:
            self.validate(enhanced)
        return enhanced

    chunk_file_enhanced = chunk

    def _run_strategy(self, strategy: ChunkingStrategy, content: str, file_path: str,
                      snapshot_id: str) -> List[EnhancedChunk]:
        logger.debug(f"Chunking {file_path} with {strategy.name.value} strategy")
        try:
            chunks = strategy.chunk(content, file_path, snapshot_id)
        except Exception as e:
            logger.warning(f"{strategy.name.value} strategy failed for {file_path}: {e}, using fallback chunks")
            return []
        if not chunks:
            logger.warning(f"{strategy.name.value} strategy produced no chunks for {file_path}, using fallback chunks")
        return chunks

    def fallback_chunks(self, content: str, file_path: str, snapshot_id: str,
                        language: str) -> List[EnhancedChunk]:
        """Fixed-size windows with metadata inferred from the text alone."""
        lines = split_lines(content)
        plain = self.create_fixed_size_chunks(
            file_path, lines, snapshot_id, language,
            size=self.config.fallback_chunk_size, overlap=0,
        )
        logger.debug(f"Created {len(plain)} fallback chunks for {file_path}")
        return [self._wrap_plain_chunk(chunk, lines, content) for chunk in plain]

    @staticmethod
    def _wrap_plain_chunk(chunk: CodeChunk, lines: List[str], content: str) -> EnhancedChunk:
        metadata = EnhancedMetadata(
            language=chunk.language,
            semantic_type=infer_semantic_type(chunk.content, chunk.language, chunk.file_path),
            symbols=list(chunk.symbols),
            complexity_score=complexity_score(chunk.content, chunk.language),
            maintainability_index=maintainability_index(chunk.content),
            dependencies=list(chunk.imports),
            lines_of_code=LinesOfCode.count(chunk.content),
        )
        context = ContextInfo(
            surrounding_context='',
            architectural_layer='unknown',
            file_context=FileContext(total_lines=len(lines), file_size=len(content)),
        )
        return EnhancedChunk(chunk=chunk, metadata=metadata, context=context)

    def enhance_chunks(self, chunks: List[EnhancedChunk], content: str) -> List[EnhancedChunk]:
        """Add relationship, quality and context facets to a file's chunks.

        New records are returned; the input chunks are left untouched, so
        enhancing the same list twice gives equal results.

        Args:
            chunks: Chunks of one file
            content: Full text of that file

        Returns:
            Enhanced chunks in input order
        """
        if not chunks:
            return []

        batch = self.relationship_analyzer.analyze_batch(chunks)
        reverse = batch.graph.reverse_adjacency
        sibling_ids = [chunk.id for chunk in chunks]
        file_dependencies: Dict[str, List[str]] = {}

        enhanced = []
        for chunk, result in zip(chunks, batch.chunk_results):
            language = chunk.language
            if language not in file_dependencies:
                file_dependencies[language] = extract_dependencies(content, language)
            dependencies = file_dependencies[language]

            quality = self.quality_calculator.calculate_for_chunk(chunk, content)
            context = self.context_analyzer.analyze(chunk, content, sibling_ids)
            if chunk.context is not None:
                if chunk.context.surrounding_context:
                    context = replace(context, surrounding_context=chunk.context.surrounding_context)
                if chunk.context.business_context:
                    context = replace(context, business_context=chunk.context.business_context)

            metadata = replace(
                chunk.metadata,
                symbols=list(chunk.symbols),
                maintainability_index=quality.maintainability_score,
                dependencies=merge_unique(chunk.metadata.dependencies, dependencies),
                dependents=merge_unique(chunk.metadata.dependents, reverse.get(chunk.id, [])),
                design_patterns=merge_unique(chunk.metadata.design_patterns, detect_design_patterns(chunk.content)),
                code_smells=self.quality_calculator.code_smells(chunk.content, language),
                security_concerns=self.quality_calculator.security_concerns(chunk.content, language),
                lines_of_code=LinesOfCode.count(chunk.content),
            )
            code_chunk = replace(
                chunk.chunk,
                symbols=list(chunk.symbols),
                imports=list(dependencies),
                comment_ratio=round(comment_ratio(chunk.content), 4),
                complexity=float(cyclomatic_complexity(chunk.content, language)),
            )
            enhanced.append(EnhancedChunk(
                chunk=code_chunk,
                metadata=metadata,
                relationships=merge_relationships(chunk.relationships, result.relationships),
                quality=quality,
                context=context,
            ))
        return enhanced

    def validate(self, chunks: List[EnhancedChunk]) -> Dict:
        """Run the validator over a chunk list and log its summary."""
        results = self.validator.validate_batch(chunks)
        summary = self.validator.batch_summary(results)
        if summary['invalid_chunks']:
            logger.warning(
                f"{summary['invalid_chunks']} of {summary['total_chunks']} chunks failed validation: "
                f"{summary['common_errors']}"
            )
        else:
            logger.info(f"All {summary['total_chunks']} chunks valid, average score {summary['average_score']:.1f}")
        return summary

    async def chunk_snapshot_file(self, provider: ContentProvider, snapshot_id: str, file_path: str,
                                  strategy_name: Union[str, StrategyName, None] = None) -> List[EnhancedChunk]:
        """Fetch a snapshot file from a provider and chunk it.

        Raises:
            SourceNotFoundError: If the provider has no content for the file
        """
        content = await provider.require_content(snapshot_id, file_path)
        return self.chunk(content, file_path, snapshot_id, strategy_name)

    async def chunk_snapshot_files(self, provider: ContentProvider, snapshot_id: str, file_paths: List[str],
                                   strategy_name: Union[str, StrategyName, None] = None
                                   ) -> Dict[str, List[EnhancedChunk]]:
        """Chunk several snapshot files concurrently, keyed by file path."""
        results = await asyncio.gather(*(
            self.chunk_snapshot_file(provider, snapshot_id, file_path, strategy_name)
            for file_path in file_paths
        ))
        logger.info(f"Chunked {len(file_paths)} files from snapshot {snapshot_id}")
        return dict(zip(file_paths, results))
