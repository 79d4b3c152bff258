"""Global pytest configuration and fixtures."""

import pytest
import sys
from pathlib import Path
from typing import Dict, Generator

# Add the package to Python path for testing
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from chunking.config import ChunkingConfig
from chunking.enhanced_chunker import EnhancedCodeChunker
from tests.fixtures.sample_code import (
    SAMPLE_JAVA_NESTED,
    SAMPLE_JS_CALLS,
    SAMPLE_JS_SERVICE,
    SAMPLE_PYTHON_MODULE,
)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "chunking: Code chunking tests")
    config.addinivalue_line("markers", "analysis: Relationship, quality and context analysis tests")
    config.addinivalue_line("markers", "validation: Metadata validation tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        path_str = str(item.fspath)

        if "tests/unit/" in path_str:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in path_str:
            item.add_marker(pytest.mark.integration)

        if any(name in path_str for name in ("test_code_chunker", "test_strategies", "test_structural_parser",
                                             "test_tree_sitter", "test_language_detector")):
            item.add_marker(pytest.mark.chunking)
        elif any(name in path_str for name in ("test_relationships", "test_quality", "test_context")):
            item.add_marker(pytest.mark.analysis)
        elif "test_validator" in path_str:
            item.add_marker(pytest.mark.validation)


@pytest.fixture
def chunker() -> EnhancedCodeChunker:
    """Enhanced chunker with heuristic parsers only."""
    return EnhancedCodeChunker(ChunkingConfig(use_ast_parsers=False))


@pytest.fixture
def sample_sources() -> Dict[str, str]:
    """Sample files keyed by the path they are chunked under."""
    return {
        'src/calls.js': SAMPLE_JS_CALLS,
        'src/Outer.java': SAMPLE_JAVA_NESTED,
        'src/services/userService.js': SAMPLE_JS_SERVICE,
        'app/orders.py': SAMPLE_PYTHON_MODULE,
    }


@pytest.fixture
def snapshot_dir(tmp_path: Path, sample_sources) -> Generator[Path, None, None]:
    """Snapshot storage directory holding the sample files under snapshot ``snap1``."""
    storage_dir = tmp_path / "snapshots"
    for file_path, content in sample_sources.items():
        target = storage_dir / "snap1" / file_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    yield storage_dir
