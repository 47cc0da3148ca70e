"""Command-line interface for the preprocessing pipeline."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config import PreprocessConfig
from .data.bundle_io import save_bundle
from .data.table_writer import TableWriter
from .errors import TextStrataError
from .pipeline import PreprocessPipeline


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Turn raw text into an aligned multi-level token bundle",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Using a config file
  textstrata --config config.yaml corpus/*.txt --output out/bundle.npz

  # Byte-level tokens with word and character offsets, streamed in chunks
  textstrata corpus/*.txt --tokenizer byte --stream --chunk-tokens 100000 \\
      --output out/bundle.npz

  # Export the token table
  textstrata notes.txt --output out/bundle.npz --table out/tokens.csv
        """,
    )

    parser.add_argument(
        "inputs",
        nargs="+",
        help="Input files (or raw text strings)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML configuration file",
    )

    # Output
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("output/bundle.npz"),
        help="Path to output bundle (default: output/bundle.npz)",
    )
    parser.add_argument(
        "--table",
        type=Path,
        help="Also export the token table to this path",
    )
    parser.add_argument(
        "--format",
        choices=["csv", "parquet", "json"],
        default="csv",
        help="Token table format (default: csv)",
    )

    # Processing options
    parser.add_argument(
        "--tokenizer",
        choices=["whitespace", "unicode", "char", "byte"],
        help="Tokenizer (default: whitespace)",
    )
    parser.add_argument(
        "--min-freq",
        type=int,
        help="Minimum token frequency for the vocabulary (default: 1)",
    )
    parser.add_argument(
        "--stream",
        action="store_true",
        help="Process input in chunks and merge the chunk bundles",
    )
    parser.add_argument(
        "--chunk-tokens",
        type=int,
        help="Token budget per chunk when streaming (default: 500000)",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show progress bars",
    )

    # Other options
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PreprocessConfig:
    """Build configuration from arguments."""
    config = PreprocessConfig.from_yaml(args.config) if args.config else PreprocessConfig()
    data = config.model_dump()

    if args.tokenizer:
        data["tokenization"]["tokenizer"] = args.tokenizer
        # lower-level offsets only exist for byte/char tokenizers
        segmentation = data["segmentation"]
        segmentation["record_byte_offsets"] = args.tokenizer == "byte"
        segmentation["record_character_offsets"] = args.tokenizer in ("char", "byte")
    if args.min_freq is not None:
        data["vocabulary"]["minimum_token_frequency"] = args.min_freq
    if args.chunk_tokens is not None:
        data["streaming"]["chunk_tokens"] = args.chunk_tokens
    if args.progress:
        data["streaming"]["show_progress"] = True

    return PreprocessConfig(**data)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = build_config(args)
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        pipeline = PreprocessPipeline(config)
        if args.stream:
            bundle = pipeline.run_streaming(args.inputs)
        else:
            bundle = pipeline.run(args.inputs)

        path = save_bundle(bundle, args.output)
        if args.table:
            with TableWriter(args.table, format=args.format) as writer:
                writer.write_level(bundle)

        print(f"\n{bundle.summary()}")
        print(f"\nBundle saved to: {path}")
        return 0
    except FileNotFoundError as e:
        print(f"Error: File not found - {e}", file=sys.stderr)
        return 1
    except TextStrataError as e:
        logging.exception("Pipeline failed")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
