#!/usr/bin/env python3
"""Command-line tool for chunking source files and printing enhanced chunks as JSON."""

import sys
import json
import argparse
import logging
from collections import Counter
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chunking.config import ChunkingConfig
from chunking.enhanced_chunker import EnhancedCodeChunker
from chunking.strategies import StrategyName


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def main():
    parser = argparse.ArgumentParser(
        description="Chunk source files and print the enhanced chunks as JSON"
    )
    parser.add_argument(
        "paths",
        nargs="+",
        help="Source files to chunk"
    )
    parser.add_argument(
        "--strategy",
        choices=[name.value for name in StrategyName],
        help="Preferred chunking strategy (default: first applicable)"
    )
    parser.add_argument(
        "--snapshot-id",
        default="local",
        help="Snapshot identifier used in chunk ids (default: local)"
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate the enhanced chunks and log the report"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    config = ChunkingConfig.from_env()
    if args.validate:
        config.validate_output = True
    chunker = EnhancedCodeChunker(config)

    output = {}
    try:
        for path_arg in args.paths:
            path = Path(path_arg)
            if not path.is_file():
                logger.error(f"File does not exist: {path}")
                sys.exit(1)

            content = path.read_text(encoding='utf-8', errors='replace')
            chunks = chunker.chunk(content, str(path), args.snapshot_id, args.strategy)
            types = Counter(chunk.metadata.semantic_type for chunk in chunks)
            logger.info(f"{path}: {len(chunks)} chunks {dict(types)}")
            output[str(path)] = [chunk.to_dict() for chunk in chunks]
    except KeyboardInterrupt:
        logger.info("Chunking interrupted by user")
        sys.exit(1)

    json.dump(output, sys.stdout, indent=2)
    sys.stdout.write('\n')


if __name__ == "__main__":
    main()
