"""
CLI for loading, searching and validating a clustered index.

Commands:
  validate - Certify every manifest field, centroid and vector (exit 0 iff passed)
  search   - Load the index and print the top hits for a query as JSON
  info     - Load the index and print its summary plus any load errors
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from clustered_index.core.config import settings
from clustered_index.core.errors import ClusteredIndexError


def _parse_embedding(raw: str) -> List[float]:
    try:
        return [float(x) for x in raw.split(",") if x.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a comma-separated list of floats: {raw!r}")


def cmd_validate(args) -> int:
    """Validate an index and print the report."""
    from clustered_index.services.validator import validate_index

    report = validate_index(
        args.manifest,
        tolerance=args.tolerance,
        expected_model_id=args.expected_model,
        expected_dimensions=args.expected_dims,
    )
    print(report.model_dump_json(indent=2))
    return 0 if report.passed else 1


def cmd_search(args) -> int:
    """Search an index with an explicit embedding or query text."""
    from clustered_index.services.loader import load_index
    from clustered_index.adapters.embedding_providers.cohere_provider import CohereProvider
    from clustered_index.services.retrieval_service import RetrievalService

    if args.embedding is None and not args.query:
        print("Error: provide --embedding or --query", file=sys.stderr)
        return 2

    index = load_index(args.manifest)
    embedder = CohereProvider()
    try:
        res = RetrievalService(index, embedder=embedder).search(
            query_text=args.query,
            query_embedding=args.embedding,
            top_m_clusters=args.top_m,
            top_k_per_cluster=args.top_k,
            final_top_n=args.top_n,
            mode="flat" if args.flat else "clustered",
        )
    finally:
        embedder.close()
    print(json.dumps(res, indent=2))
    return 0


def cmd_info(args) -> int:
    """Load an index and print its summary."""
    from clustered_index.services.loader import load_index

    index = load_index(args.manifest)
    print(json.dumps({
        **index.summary(),
        "load_errors": [f.to_dict() for f in index.load_errors],
    }, indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="clustered-index",
        description="Clustered semantic index CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="Logging level")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Validate command
    parser_val = subparsers.add_parser("validate", help="Validate an index")
    parser_val.add_argument("manifest", help="Manifest path or URL")
    parser_val.add_argument("--tolerance", type=float, default=None, help="Unit-norm tolerance")
    parser_val.add_argument("--expected-model", default=None, help="Required manifest modelId")
    parser_val.add_argument("--expected-dims", type=int, default=None, help="Required manifest dimensions")

    # Search command
    parser_search = subparsers.add_parser("search", help="Search an index")
    parser_search.add_argument("manifest", help="Manifest path or URL")
    parser_search.add_argument("--embedding", type=_parse_embedding, default=None,
                               help="Comma-separated unit-norm query vector")
    parser_search.add_argument("--query", default=None, help="Query text (embedded via Cohere)")
    parser_search.add_argument("--top-m", type=int, default=None, help="Clusters to probe")
    parser_search.add_argument("--top-k", type=int, default=None, help="Documents per cluster")
    parser_search.add_argument("--top-n", type=int, default=None, help="Final hits")
    parser_search.add_argument("--flat", action="store_true", help="Exhaustive scan instead of clustered search")

    # Info command
    parser_info = subparsers.add_parser("info", help="Show index summary")
    parser_info.add_argument("manifest", help="Manifest path or URL")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=args.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )

    commands = {"validate": cmd_validate, "search": cmd_search, "info": cmd_info}
    try:
        return commands[args.command](args)
    except (ClusteredIndexError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
