#!/usr/bin/env python3
"""
Command-line interface for batched contract reads.

Usage:
    python -m src.batchers.cli request.json
    python -m src.batchers.cli request.json --chain base --block-height 10 --block-resolution 100
    python -m src.batchers.cli request.json --rpc-url http://localhost:8545 --simplify
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, List

from src.batchers.batch_call import BatchCall
from src.batchers.errors import BatchError
from src.config import ConfigError, get_config


# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def load_request(path: str) -> List[Any]:
    """Load a batch request (a JSON list of contract groups)."""
    with open(path, "r") as f:
        request = json.load(f)
    if isinstance(request, dict):
        request = [request]
    if not isinstance(request, list):
        raise ValueError(f"{path}: a batch request must be a list of contract groups")
    return request


def write_result(result: Any, output: str = None) -> None:
    """Print the result tree, or write it to ``output``."""
    text = json.dumps(result, indent=2, default=str)
    if output:
        with open(output, "w") as f:
            f.write(text + "\n")
        logger.info(f"Result written to {output}")
    else:
        print(text)


async def run(args) -> bool:
    """Run one batch request."""
    request = load_request(args.request)
    options = {
        "group_by_namespace": args.group_by_namespace,
        "simplify_response": args.simplify,
        "enable_logging": True,
    }
    if args.rpc_url:
        options["provider"] = args.rpc_url

    engine = BatchCall.from_config(get_config(), chain=args.chain, **options)
    result = await engine.execute(
        request,
        block_height=args.block_height,
        block_resolution=args.block_resolution,
    )
    write_result(result, args.output)
    return True


async def main():
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Read many contract methods across many blocks in one RPC batch",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Read the methods listed in request.json at the head of Ethereum
  python -m src.batchers.cli request.json

  # Sample 24 blocks, 300 blocks apart, on Base
  python -m src.batchers.cli request.json --chain base --block-height 24 --block-resolution 300

  # Group results by namespace and write them to a file
  python -m src.batchers.cli request.json --group-by-namespace --output result.json
        """,
    )

    parser.add_argument("request", help="JSON file holding the list of contract groups")
    parser.add_argument(
        "--chain",
        choices=["ethereum", "base", "arbitrum"],
        help="Chain to read from (default: DEFAULT_CHAIN)",
    )
    parser.add_argument("--rpc-url", help="Override the chain's RPC url")
    parser.add_argument(
        "--block-height", type=int, default=1, help="Number of blocks to sample"
    )
    parser.add_argument(
        "--block-resolution", type=int, default=1, help="Distance between sampled blocks"
    )
    parser.add_argument(
        "--group-by-namespace", action="store_true", help="Group results by namespace"
    )
    parser.add_argument(
        "--simplify", action="store_true", help="Collapse single-valued methods"
    )
    parser.add_argument("--output", help="Write the result to this file")

    args = parser.parse_args()

    if args.block_height < 1 or args.block_resolution < 1:
        parser.error("--block-height and --block-resolution must be >= 1")

    try:
        success = await run(args)
        sys.exit(0 if success else 1)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except (BatchError, ConfigError, ValueError, OSError) as e:
        logger.error(f"Batch call failed: {e}")
        sys.exit(1)


def cli():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    cli()
