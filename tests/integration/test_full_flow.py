"""Integration tests for the full chunk-and-enhance pipeline."""

import asyncio
import json
import logging
import sys

import pytest

from chunking.config import ChunkingConfig
from chunking.content_provider import (
    DirectoryContentProvider,
    InMemoryContentProvider,
    SourceNotFoundError,
)
from chunking.enhanced_chunker import EnhancedCodeChunker
from chunking.models import split_lines
from chunking.strategies import SemanticChunkingStrategy, StrategySelector
from tests.fixtures.sample_code import (
    SAMPLE_JAVA_NESTED,
    SAMPLE_JS_CALLS,
    SAMPLE_JS_SERVICE,
    SAMPLE_PYTHON_MODULE,
    plain_text,
)


LONG_JS_FUNCTION = '\n'.join(['function big() {'] + [f'  step({i});' for i in range(39)] + ['}'])


class FailingStrategy(SemanticChunkingStrategy):
    def chunk(self, content, file_path, snapshot_id):
        raise RuntimeError("parser exploded")


def edges_of(chunk, rel_type):
    return [rel.target_chunk_id for rel in chunk.relationships if rel.type == rel_type]


class TestFullChunkingFlow:
    """End-to-end runs over the sample sources."""

    def test_calls_between_functions(self, chunker):
        helper, main = chunker.chunk(SAMPLE_JS_CALLS, 'src/calls.js', 'snap')

        assert helper.symbols == ['helper']
        assert main.symbols == ['main']
        assert (helper.start_line, helper.end_line) == (0, 2)
        assert (main.start_line, main.end_line) == (4, 6)
        assert edges_of(main, 'calls') == [helper.id]
        assert main.id in helper.metadata.dependents
        assert helper.quality is not None
        assert main.context.file_context.total_lines == 8

    def test_fallback_for_plain_text(self, chunker):
        content = plain_text(120)

        chunks = chunker.chunk(content, 'notes.txt', 'snap')

        assert [(c.start_line, c.end_line) for c in chunks] == [(0, 49), (50, 99), (100, 119)]
        assert all(c.quality is not None and c.context is not None for c in chunks)
        assert all(c.language == 'text' for c in chunks)
        covered = set()
        for c in chunks:
            covered.update(range(c.start_line, c.end_line + 1))
        assert covered == set(range(120))

    def test_security_concern_flagged(self, chunker):
        chunks = chunker.chunk(SAMPLE_JS_SERVICE, 'src/services/userService.js', 'snap')

        service = next(c for c in chunks if 'UserService' in c.symbols)
        assert 'SQL Injection Risk' in service.metadata.security_concerns
        assert service.quality.security_risk > 0
        assert service.context.architectural_layer == 'service'

    def test_hierarchical_parent_child_edges(self, chunker):
        chunks = chunker.chunk(SAMPLE_JAVA_NESTED, 'src/Outer.java', 'snap', strategy_name='hierarchical')

        by_symbol = {c.symbols[0]: c for c in chunks}
        outer, inner = by_symbol['Outer'], by_symbol['Inner']
        assert inner.id in edges_of(outer, 'uses')
        assert outer.id in edges_of(inner, 'extends')

    def test_strategy_failure_falls_back(self, caplog):
        chunker = EnhancedCodeChunker(selector=StrategySelector([FailingStrategy()]))

        with caplog.at_level(logging.WARNING):
            chunks = chunker.chunk(SAMPLE_JS_CALLS, 'src/calls.js', 'snap')

        assert [(c.start_line, c.end_line) for c in chunks] == [(0, 7)]
        assert chunks[0].quality is not None
        assert 'parser exploded' in caplog.text

    def test_empty_content(self, chunker):
        assert chunker.chunk('', 'src/empty.js', 'snap') == []


class TestConfiguredChunking:
    """Chunker settings reaching the strategies."""

    def test_default_size_keeps_function_whole(self):
        chunker = EnhancedCodeChunker(ChunkingConfig(use_ast_parsers=False))

        chunks = chunker.chunk(LONG_JS_FUNCTION, 'src/big.js', 'snap')

        assert [(c.start_line, c.end_line) for c in chunks] == [(0, 40)]
        assert chunks[0].symbols == ['big']

    def test_chunk_size_windows_long_function(self):
        chunker = EnhancedCodeChunker(ChunkingConfig(chunk_size=10, chunk_overlap=0, use_ast_parsers=False))

        chunks = chunker.chunk(LONG_JS_FUNCTION, 'src/big.js', 'snap')

        assert [(c.start_line, c.end_line) for c in chunks] == [(0, 9), (10, 19), (20, 29), (30, 39), (40, 40)]
        assert chunks[0].symbols == ['big_part_1']

    def test_chunk_overlap_shared_between_windows(self):
        chunker = EnhancedCodeChunker(ChunkingConfig(chunk_size=10, chunk_overlap=4, use_ast_parsers=False))

        chunks = chunker.chunk(LONG_JS_FUNCTION, 'src/big.js', 'snap')

        assert [(c.start_line, c.end_line) for c in chunks] == [
            (0, 9), (8, 17), (16, 25), (24, 33), (32, 40),
        ]
        assert len({c.id for c in chunks}) == len(chunks)

    def test_ast_parsers_keep_methods_inside_class(self):
        pytest.importorskip('tree_sitter_python')

        with_ast = EnhancedCodeChunker(ChunkingConfig(use_ast_parsers=True))
        without_ast = EnhancedCodeChunker(ChunkingConfig(use_ast_parsers=False))

        ast_chunks = with_ast.chunk(SAMPLE_PYTHON_MODULE, 'app/orders.py', 'snap')
        heuristic_chunks = without_ast.chunk(SAMPLE_PYTHON_MODULE, 'app/orders.py', 'snap')

        assert [c.symbols for c in ast_chunks] == [['OrderRepository'], ['load_orders'], ['process_orders']]
        assert [(c.start_line, c.end_line) for c in ast_chunks] == [(7, 15), (18, 23), (26, 29)]
        assert [c.symbols[0] for c in heuristic_chunks] == [
            'OrderRepository', '__init__', 'add', 'load_orders', 'process_orders',
        ]


class TestPipelineProperties:
    """Properties that hold for every sample file."""

    def test_bounds_and_unique_ids(self, chunker, sample_sources):
        for file_path, content in sample_sources.items():
            chunks = chunker.chunk(content, file_path, 'snap')
            total_lines = len(split_lines(content))

            assert chunks, file_path
            for c in chunks:
                assert 0 <= c.start_line <= c.end_line < total_lines
                for rel in c.relationships:
                    assert 0 <= rel.strength <= 1
                    assert 0 <= rel.metadata.confidence <= 1
            ids = [c.id for c in chunks]
            assert len(ids) == len(set(ids))

    def test_deterministic_across_snapshots(self, chunker, sample_sources):
        for file_path, content in sample_sources.items():
            first = chunker.chunk(content, file_path, 'a')
            second = chunker.chunk(content, file_path, 'b')

            assert [(c.start_line, c.end_line) for c in first] == [(c.start_line, c.end_line) for c in second]
            assert [c.metadata.semantic_type for c in first] == [c.metadata.semantic_type for c in second]
            assert all(c.id.startswith('a_') for c in first)
            assert all(c.id.startswith('b_') for c in second)

    def test_enhancement_is_repeatable(self, chunker):
        strategy = chunker.selector.applicable('javascript', SAMPLE_JS_SERVICE)
        raw = strategy.chunk(SAMPLE_JS_SERVICE, 'src/services/userService.js', 'snap')

        first = chunker.enhance_chunks(raw, SAMPLE_JS_SERVICE)
        second = chunker.enhance_chunks(raw, SAMPLE_JS_SERVICE)

        assert first == second

    def test_all_samples_validate(self, chunker, sample_sources):
        for file_path, content in sample_sources.items():
            summary = chunker.validate(chunker.chunk(content, file_path, 'snap'))
            assert summary['invalid_chunks'] == 0, (file_path, summary['common_errors'])

    def test_validate_output_logs_summary(self, caplog):
        chunker = EnhancedCodeChunker(ChunkingConfig(use_ast_parsers=False, validate_output=True))

        with caplog.at_level(logging.INFO, logger='chunking.enhanced_chunker'):
            chunker.chunk(SAMPLE_JS_CALLS, 'src/calls.js', 'snap')

        assert 'All 2 chunks valid' in caplog.text

    def test_chunks_serialize_to_json(self, chunker):
        chunks = chunker.chunk(SAMPLE_JS_SERVICE, 'src/services/userService.js', 'snap')
        data = json.loads(json.dumps([c.to_dict() for c in chunks]))
        assert data[0]['id'] == chunks[0].id


class TestSnapshotChunking:
    """Chunking content fetched through providers."""

    def test_directory_provider(self, chunker, snapshot_dir, sample_sources):
        provider = DirectoryContentProvider(snapshot_dir)
        paths = list(sample_sources)

        results = asyncio.run(chunker.chunk_snapshot_files(provider, 'snap1', paths))

        assert list(results) == paths
        for file_path, chunks in results.items():
            expected = chunker.chunk(sample_sources[file_path], file_path, 'snap1')
            assert [c.id for c in chunks] == [c.id for c in expected]

    def test_in_memory_provider(self, chunker):
        provider = InMemoryContentProvider({('snap1', 'src/calls.js'): SAMPLE_JS_CALLS})

        chunks = asyncio.run(chunker.chunk_snapshot_file(provider, 'snap1', 'src/calls.js'))

        assert [c.symbols for c in chunks] == [['helper'], ['main']]

    def test_missing_file_raises(self, chunker):
        provider = InMemoryContentProvider()

        with pytest.raises(SourceNotFoundError):
            asyncio.run(chunker.chunk_snapshot_files(provider, 'snap1', ['src/missing.js']))


class TestChunkFileScript:
    def test_prints_chunks_as_json(self, tmp_path, monkeypatch, capsys):
        from scripts.chunk_file import main

        source = tmp_path / "calls.js"
        source.write_text(SAMPLE_JS_CALLS)
        monkeypatch.setattr(sys, 'argv', ['chunk_file.py', str(source), '--strategy', 'semantic'])

        main()

        output = json.loads(capsys.readouterr().out)
        assert len(output[str(source)]) == 2

    def test_missing_file_exits(self, tmp_path, monkeypatch):
        from scripts.chunk_file import main

        monkeypatch.setattr(sys, 'argv', ['chunk_file.py', str(tmp_path / "nope.js")])

        with pytest.raises(SystemExit):
            main()
