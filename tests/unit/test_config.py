"""Unit tests for chunking configuration."""

from chunking.config import ChunkingConfig


class TestChunkingConfig:
    """Test cases for ChunkingConfig."""

    def test_defaults(self):
        config = ChunkingConfig()
        assert config.chunk_size == 250
        assert config.chunk_overlap == 100
        assert config.fallback_chunk_size == 50
        assert config.use_ast_parsers is True
        assert config.validate_output is False
        assert config.min_relationship_confidence == 0.3

    def test_chunk_size_floor(self):
        config = ChunkingConfig(chunk_size=3, chunk_overlap=0)
        assert config.chunk_size == 10

    def test_overlap_kept_below_size(self):
        config = ChunkingConfig(chunk_size=20, chunk_overlap=50)
        assert config.chunk_overlap == 15

    def test_negative_overlap(self):
        config = ChunkingConfig(chunk_overlap=-4)
        assert config.chunk_overlap == 0

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CODE_CHUNKER_CHUNK_SIZE", "120")
        monkeypatch.setenv("CODE_CHUNKER_CHUNK_OVERLAP", "20")
        monkeypatch.setenv("CODE_CHUNKER_USE_AST", "false")
        monkeypatch.setenv("CODE_CHUNKER_VALIDATE", "yes")

        config = ChunkingConfig.from_env()

        assert config.chunk_size == 120
        assert config.chunk_overlap == 20
        assert config.use_ast_parsers is False
        assert config.validate_output is True

    def test_from_env_ignores_bad_integers(self, monkeypatch, caplog):
        monkeypatch.setenv("CODE_CHUNKER_CHUNK_SIZE", "huge")
        monkeypatch.delenv("CODE_CHUNKER_CHUNK_OVERLAP", raising=False)

        config = ChunkingConfig.from_env()

        assert config.chunk_size == 250
        assert "CODE_CHUNKER_CHUNK_SIZE" in caplog.text
