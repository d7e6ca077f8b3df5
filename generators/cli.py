"""CLI entry point for the synthetic transaction generator.

Usage:
    python -m generators transactions --count 100
    python -m generators transactions --config configs/transactions.yaml --seed 42 --score
    python -m generators transactions --count 500 --output db
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog
import yaml

from src.config import settings
from src.domains.fraud.config import FraudConfig
from src.domains.fraud.models import Transaction
from src.domains.fraud.scorer import FallbackScorer
from src.shared.logging import setup_logging

from .transaction_generator import TransactionGenerator

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fraud Pulse synthetic data generator")
    parser.add_argument(
        "generator",
        choices=["transactions"],
        help="Which generator to run",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config file")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducibility")
    parser.add_argument("--count", type=int, default=100, help="Number of transactions")
    parser.add_argument(
        "--score",
        action="store_true",
        help="Score with the local heuristic before writing",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="stdout",
        choices=["stdout", "file", "db"],
        help="Output destination",
    )
    parser.add_argument("--output-file", type=str, default=None, help="Output file path")
    return parser


def load_config(path: str | None) -> dict:
    if path is None:
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def generate(args: argparse.Namespace, fraud_config: FraudConfig) -> list[Transaction]:
    gen = TransactionGenerator(
        config=load_config(args.config),
        seed=args.seed,
        settings=fraud_config.generation,
    )
    events = gen.generate(args.count)

    # The store only accepts scored events
    if args.score or args.output == "db":
        scorer = FallbackScorer(config=fraud_config, rng=gen.rng)
        events = [e.with_score(scorer.score(e)) for e in events]
    return events


async def write_to_db(events: list[Transaction], fraud_config: FraudConfig) -> int:
    from src.db.database import build_engine, build_session_factory, init_db
    from src.domains.fraud.store import TransactionStore

    engine = build_engine(settings.database_url)
    try:
        await init_db(engine)
        store = TransactionStore(build_session_factory(engine))
        for event in events:
            await store.insert(event)
        await store.evict_oldest(fraud_config.retention.retention_cap)
    finally:
        await engine.dispose()
    return len(events)


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(settings.log_level, json_logs=False)
    fraud_config = FraudConfig.from_env()

    events = generate(args, fraud_config)

    if args.output == "stdout":
        for event in events:
            print(event.model_dump_json())
    elif args.output == "file":
        output_path = args.output_file or f"output/{args.generator}.jsonl"
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            for event in events:
                f.write(json.dumps(event.model_dump(mode="json")) + "\n")
        logger.info("events_written", count=len(events), path=output_path)
    elif args.output == "db":
        written = asyncio.run(write_to_db(events, fraud_config))
        logger.info("events_seeded", count=written, database=settings.database_url.split("@")[-1])
    else:
        print(f"Unknown output: {args.output}", file=sys.stderr)
        sys.exit(1)

    flagged = sum(1 for e in events if e.is_flagged)
    logger.info("generation_complete", count=len(events), flagged=flagged)
