"""Chunking engine configuration."""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ENV_PREFIX = 'CODE_CHUNKER_'


@dataclass
class ChunkingConfig:
    """Settings supplied once when the chunker is built.

    ``chunk_size`` is floored at 10 lines and ``chunk_overlap`` is kept at
    least 5 lines below it.
    """

    chunk_size: int = 250
    chunk_overlap: int = 100
    fallback_chunk_size: int = 50
    use_ast_parsers: bool = True
    validate_output: bool = False
    min_relationship_confidence: float = 0.3

    def __post_init__(self):
        self.chunk_size = max(10, int(self.chunk_size))
        self.chunk_overlap = max(0, min(int(self.chunk_overlap), self.chunk_size - 5))
        self.fallback_chunk_size = max(1, int(self.fallback_chunk_size))

    @classmethod
    def from_env(cls) -> 'ChunkingConfig':
        """Build a config from ``CODE_CHUNKER_*`` environment variables."""
        defaults = cls()
        return cls(
            chunk_size=_env_int('CHUNK_SIZE', defaults.chunk_size),
            chunk_overlap=_env_int('CHUNK_OVERLAP', defaults.chunk_overlap),
            fallback_chunk_size=_env_int('FALLBACK_SIZE', defaults.fallback_chunk_size),
            use_ast_parsers=_env_bool('USE_AST', defaults.use_ast_parsers),
            validate_output=_env_bool('VALIDATE', defaults.validate_output),
        )


def _env_int(name: str, default: int) -> int:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer {ENV_PREFIX}{name}={value!r}, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or value == '':
        return default
    return value.lower() in ('1', 'true', 'yes', 'on')
