import argparse
import logging
import random
from pathlib import Path

from .config import (
    DATA_DIR,
    DEFAULT_MAX_WORKERS,
    HTTP_TIMEOUT,
    SOFTMAX_ALPHA,
    SPARQL_ENDPOINT,
    TARGET_USER_ID,
)
from .frequency import ranking_table
from .reporting import LoggingReporter
from .session import RecommendationSession
from .sparql import SparqlGateway
from .store import ProfileStore

logger = logging.getLogger(__name__)


def _validate_data_dir(data_dir: str) -> Path:
    """
    Check the data directory exists.
    Missing feed files inside it are tolerated (the store logs and skips them).
    """
    path = Path(data_dir)
    if not path.is_dir():
        raise ValueError(f"Data directory not found: {data_dir}")
    return path


def _build_session(args: argparse.Namespace) -> RecommendationSession | None:
    try:
        data_dir = _validate_data_dir(args.data_dir)
    except ValueError as exc:
        logger.error(str(exc))
        return None

    store = ProfileStore.from_directory(data_dir, target_user_id=args.user)
    if not store.liked_ids:
        logger.warning(f"No liked movies for user {args.user} in {data_dir}")

    gateway = SparqlGateway(endpoint=args.endpoint, timeout=args.timeout)
    return RecommendationSession(
        store,
        gateway,
        rng=random.Random(getattr(args, "seed", None)),
        reporter=LoggingReporter(),
        alpha=getattr(args, "alpha", SOFTMAX_ALPHA),
        max_workers=getattr(args, "workers", DEFAULT_MAX_WORKERS),
        show_progress=not args.quiet,
    )


def cmd_recommend(args: argparse.Namespace) -> None:
    """Run the full pipeline and print one recommendation."""
    session = _build_session(args)
    if session is None:
        return

    with session:
        result = session.recommend()
        stats = session.gateway.stats()

    logger.debug(
        f"Knowledge graph: {stats['queries_sent']} queries, {stats['cache_hits']} cache hits"
    )
    if not result.selection.found:
        logger.info("No recommendation could be made from the knowledge graph results")
        return

    logger.info(f"\nRecommended: {result.title}")
    if result.entity_error is not None:
        logger.info(f"Entity error: {result.entity_error.error:.2f}")


def cmd_profile(args: argparse.Namespace) -> None:
    """Show the target user's preference profile."""
    session = _build_session(args)
    if session is None:
        return

    with session:
        taste = session.build_taste_profile(include_entities=not args.no_entities)
        director_counts = {} if args.no_entities else session.extractor.entity_counts("director")

    logger.info(f"\nProfile for user {args.user}")
    logger.info(f"  Liked films: {len(session.store.liked_ids)}")
    if director_counts:
        logger.info("\nDirector ranking:")
        for name, count in ranking_table(director_counts)[:10]:
            logger.info(f"  {name}: {count}")
    logger.info(f"\nPreferred years: {', '.join(map(str, taste.years)) or '(none)'}")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--data-dir", default=str(DATA_DIR),
                        help=f"Directory with movies.csv, tags.csv, ratings.csv (default: {DATA_DIR})")
    parser.add_argument("--user", type=int, default=TARGET_USER_ID,
                        help=f"Target user id (default: {TARGET_USER_ID})")
    parser.add_argument("--endpoint", default=SPARQL_ENDPOINT, help="SPARQL endpoint URL")
    parser.add_argument("--timeout", type=float, default=HTTP_TIMEOUT,
                        help="Per-query timeout in seconds")
    parser.add_argument("--quiet", "-q", action="store_true", help="Hide progress bars")


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="Knowledge-based movie recommender")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Recommend command
    rec_parser = subparsers.add_parser("recommend", help="Pick one recommendation by softmax over aspect counts")
    _add_common_arguments(rec_parser)
    rec_parser.add_argument("--seed", type=int, help="Random seed for a reproducible pick")
    rec_parser.add_argument("--alpha", type=float, default=SOFTMAX_ALPHA,
                            help=f"Softmax inverse temperature (default: {SOFTMAX_ALPHA})")
    rec_parser.add_argument("--workers", type=int, default=DEFAULT_MAX_WORKERS,
                            help="Run aspect searches in parallel with this many workers")
    rec_parser.set_defaults(func=cmd_recommend)

    # Profile command
    profile_parser = subparsers.add_parser("profile", help="Show the user's preference profile")
    _add_common_arguments(profile_parser)
    profile_parser.add_argument("--no-entities", action="store_true",
                                help="Skip knowledge-graph lookups for actors and directors")
    profile_parser.set_defaults(func=cmd_profile)

    args = parser.parse_args(argv)

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    args.func(args)
