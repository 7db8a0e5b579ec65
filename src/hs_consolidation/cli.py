# cli.py

"""
Command-line entry point.

Examples:
  hs-consolidate listings.csv                        # Consolidate a listings file
  hs-consolidate listings.json -o results.csv        # ...and export the per-variant table
  hs-consolidate --hs beverages --name "Red Wine"    # HS suggestions for a product
  hs-consolidate --hs beverages                      # Chapter suggestions for a category
  hs-consolidate --children 22                       # Headings under chapter 22
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

from .analysis import confidence_by_source, results_to_frame
from .catalogs import load_categories, load_hs_nodes
from .config.settings import get_settings
from .core import ConsolidationEngine, SimilarityCache
from .gateways import LLMCategorizer, SentenceTransformerGateway
from .hs import HSCatalog, HSCodeHierarchyService
from .models import HSCodeRequest, HSCodeSuggestion
from .preprocessing import products_from_frame
from .util.errors import ConsolidationError
from .util.logger import init_logger, set_log_level

logger = logging.getLogger(__name__)


def _load_table(path: Path) -> pd.DataFrame:
    """Load CSV or JSON listings with pandas."""
    suffix = path.suffix.lower()
    if suffix == ".json":
        return pd.read_json(path, dtype=False)
    if suffix in {".jsonl", ".ndjson"}:
        return pd.read_json(path, lines=True, dtype=False)
    try:
        return pd.read_csv(path, low_memory=False, dtype=str)
    except UnicodeDecodeError:
        return pd.read_csv(path, low_memory=False, dtype=str, encoding="latin-1")


def _print_suggestions(suggestions: List[HSCodeSuggestion]) -> None:
    if not suggestions:
        print("No HS codes found.")
        return
    for s in suggestions:
        print(f"{s.code:<8} {str(s.level):<11} {s.confidence:.2f}  {s.description}")


def _run_consolidation(args: argparse.Namespace, cache: SimilarityCache) -> int:
    settings = get_settings()
    df = _load_table(Path(args.listings))
    products = products_from_frame(df)
    logger.info("cli.loaded rows=%d file=%s", len(products), args.listings)

    engine = ConsolidationEngine(
        load_categories(args.categories),
        SentenceTransformerGateway(settings.EMBEDDING_MODEL_NAME, settings.EMBEDDING_DEVICE),
        cache=cache,
        settings=settings,
        llm=LLMCategorizer(settings),
    )
    results = engine.consolidate_sync(products)

    for r in results:
        flag = " [fallback]" if r.fallback_used else ""
        print(f"{r.category.name} ({r.label}): {r.item_count} variant(s), confidence {r.confidence:.2f}{flag}")
        if r.attributes:
            print("    " + ", ".join(f"{k}={v}" for k, v in r.attributes.items()))

    print()
    print(confidence_by_source(results).to_string())

    if args.output:
        results_to_frame(results).to_csv(args.output, index=False)
        print(f"\nWrote {args.output}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Consolidate product listings into categories and suggest HS codes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("listings", nargs="?", help="CSV / JSON / JSONL file of product listings")
    parser.add_argument("--output", "-o", help="Write the per-variant result table to this CSV")
    parser.add_argument("--categories", help="Category catalog JSON (default: bundled)")
    parser.add_argument("--hs-catalog", help="HS code catalog JSON (default: bundled)")
    parser.add_argument("--hs", metavar="CATEGORY", help="Suggest HS codes for a category")
    parser.add_argument("--name", help="Product name for --hs")
    parser.add_argument("--description", help="Product description for --hs")
    parser.add_argument("--children", metavar="CODE", help="List HS codes one level below CODE")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    init_logger()
    if args.debug:
        set_log_level(logging.DEBUG)

    settings = get_settings()
    cache = SimilarityCache(
        max_entries=settings.CACHE_MAX_ENTRIES,
        default_ttl_seconds=settings.decision_cache_ttl_seconds,
    )

    try:
        if args.hs or args.children:
            service = HSCodeHierarchyService(
                HSCatalog(load_hs_nodes(args.hs_catalog)),
                load_categories(args.categories),
                cache=cache,
                settings=settings,
            )
            if args.children:
                _print_suggestions(service.get_children(args.children))
            else:
                request = HSCodeRequest(category=args.hs, name=args.name, description=args.description)
                _print_suggestions(service.get_suggested_hs_codes(request))
            return 0

        if not args.listings:
            parser.print_help()
            return 2
        return _run_consolidation(args, cache)

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130
    except (ConsolidationError, ValueError, OSError) as e:
        logger.error("cli.failed error=%s", e)
        if args.debug:
            logger.exception("cli.failed traceback")
        return 1


if __name__ == "__main__":
    sys.exit(main())
