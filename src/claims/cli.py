#!/usr/bin/env python3
"""
CLI for creating marine claims from first notifications.

Usage:
    python -m src.claims.cli --text "MV Nova Star collided with a tug near Singapore"
    python -m src.claims.cli --text-file notifications/nova_star.txt --save --pretty
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..utils.config import get_settings
from .config import OracleConfig
from .errors import ClaimError
from .pipeline import ClaimPipeline


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else getattr(logging, get_settings().log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def read_text_file(path: str) -> str:
    """Read text from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Create a marine claim from a first notification',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Inline notification text (rule-based, no API key needed)
  python -m src.claims.cli --text "MV Nova Star collided with a tug near Singapore"

  # Notification from a file, stored in the claim database
  python -m src.claims.cli --text-file notifications/nova_star.txt --save

  # Consult an LLM oracle first
  python -m src.claims.cli --text-file notifications/nova_star.txt --llm-provider openai

  # Pretty print output
  python -m src.claims.cli --text "Cargo hold flooding at berth" --pretty
        """
    )

    # Text input (mutually exclusive)
    text_group = parser.add_mutually_exclusive_group(required=True)
    text_group.add_argument(
        '--text',
        type=str,
        help='First notification text (inline)'
    )
    text_group.add_argument(
        '--text-file',
        type=str,
        help='Path to file containing the first notification'
    )

    parser.add_argument(
        '--created-by',
        type=str,
        default='cli',
        help='User recording the notification (default: cli)'
    )

    # Configuration
    parser.add_argument(
        '--llm-provider',
        type=str,
        choices=['claude', 'openai', 'mock'],
        default='mock',
        help='Oracle provider to consult (default: mock, rule-based only)'
    )
    parser.add_argument(
        '--llm-model',
        type=str,
        help='Specific LLM model to use'
    )
    parser.add_argument(
        '--api-key',
        type=str,
        help='API key for LLM provider (or set ANTHROPIC_API_KEY/OPENAI_API_KEY env var)'
    )

    # Storage
    parser.add_argument(
        '--save',
        action='store_true',
        help='Store the claim (allocates the next claim number from the store)'
    )
    parser.add_argument(
        '--db',
        type=str,
        help='Claim database path (default: CLAIMS_DB_PATH setting)'
    )

    # Output options
    parser.add_argument(
        '--pretty',
        action='store_true',
        help='Pretty print JSON output'
    )

    # Logging
    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Main CLI entry point."""
    load_dotenv()
    args = parse_args(argv)

    # Setup logging
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        # Get text
        if args.text is not None:
            text = args.text
        else:
            text = read_text_file(args.text_file)

        logger.info(f"Input text: {len(text)} characters")

        # Create config
        config = OracleConfig(
            llm_provider=args.llm_provider,
            llm_model=args.llm_model,
            api_key=args.api_key
        )
        logger.info(f"Using oracle provider: {config.llm_provider}, model: {config.llm_model}")

        if config.llm_provider != "mock" and not config.validate():
            logger.error(
                f"Invalid configuration: {config.llm_provider} requires API key. "
                "Set --api-key or environment variable."
            )
            sys.exit(1)

        pipeline = ClaimPipeline(config)

        if args.save:
            # Storage is only needed with --save
            from ..storage.claim_store import ClaimStore
            from ..workflow.claim_service import ClaimService

            store = ClaimStore(Path(args.db)) if args.db else ClaimStore()
            claim = ClaimService(store, pipeline=pipeline).create_claim(args.created_by, text)
            logger.info(f"Claim stored in: {store.db_path}")
        else:
            claim = pipeline.create_claim_record(args.created_by, text)

        logger.info(f"Claim created successfully: {claim.claim_number}")

        # Output
        indent = 2 if args.pretty else None
        print(claim.model_dump_json(indent=indent))

        # Print summary
        if args.verbose:
            print("\n" + "="*60, file=sys.stderr)
            print("CLAIM SUMMARY", file=sys.stderr)
            print("="*60, file=sys.stderr)
            print(f"Claim Number: {claim.claim_number}", file=sys.stderr)
            print(f"Vessel: {claim.extraction.vessel_name or '-'}", file=sys.stderr)
            print(f"Location: {claim.extraction.location_text or '-'}", file=sys.stderr)
            print(f"Role: {claim.classification.business_role.value}", file=sys.stderr)
            for cover in claim.classification.covers:
                print(f"Cover: {cover.type.value} ({cover.confidence:.2f})", file=sys.stderr)
            print(f"Actions: {len(claim.actions)}", file=sys.stderr)
            print("="*60, file=sys.stderr)

    except ClaimError as e:
        logger.error(f"Claim rejected: {e}")
        sys.exit(2)
    except Exception as e:
        logger.error(f"Error creating claim: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
