#!/usr/bin/env python3
"""
CLI for resolving and scoring properties offline.

Usage:
    python -m hmo_engine.cli normalise "<address>" [--postcode PC]
    python -m hmo_engine.cli match <target_json> <candidates_json>
    python -m hmo_engine.cli evaluate <properties_json> [--summary]
    python -m hmo_engine.cli ingest <batches_json> [--summary]

Examples:
    # Rank candidate records against one target
    python -m hmo_engine.cli match target.json candidates.json

    # Fold provider payloads into canonical properties and score them
    python -m hmo_engine.cli ingest batches.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from hmo_engine.address import normalise_address
from hmo_engine.matching import MatchCandidate, MatchSubject, match_confidence, rank_candidates
from hmo_engine.pipeline import ResolutionPipeline
from hmo_engine.reconciliation import CreationRejected, reconcile
from hmo_engine.store import InMemoryPropertyStore
from utils.config import Config
from utils.formatting import format_area, format_currency, format_percent


CLI_SOURCE = "cli"


def _load_json(path_arg: str) -> Any:
    """
    Read a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        json.JSONDecodeError: If the file is not valid JSON
    """
    input_path = Path(path_arg)
    if not input_path.exists():
        raise FileNotFoundError(f"File not found: {input_path}")
    with open(input_path, "r") as f:
        return json.load(f)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _print_summary(evaluations: list) -> None:
    """One line per property: score, HMO tag, TA verdict, yield and floor area."""
    for evaluation in evaluations:
        deal = evaluation.deal_score
        facts = deal.facts
        classification = deal.classification.value if deal.classification else "-"
        print(
            f"{evaluation.property.address} [{evaluation.property.postcode or '-'}]: "
            f"score {deal.score:.1f} ({classification}), "
            f"TA {evaluation.ta.verdict.value} {evaluation.ta.score}/5, "
            f"yield {format_percent(deal.gross_yield_percent)}, "
            f"rent {format_currency(deal.annual_rent)}/yr, "
            f"area {format_area(facts.gross_internal_area_sqm, facts.area_is_estimated)}"
        )


def _build_pipeline(config: Config) -> ResolutionPipeline:
    return ResolutionPipeline(
        store=InMemoryPropertyStore(),
        match_policy=config.match_policy(),
        deal_policy=config.deal_scoring_policy(),
        ta_policy=config.ta_policy(),
    )


def cmd_normalise(args) -> int:
    """Print the normalised form of one address."""
    normalised = normalise_address(args.address, args.postcode)
    _print_json({
        "street_number": normalised.street_number,
        "street_name": normalised.street_name,
        "normalised_full": normalised.normalised_full,
        "outcode": normalised.outcode,
        "district": normalised.district,
    })
    return 0


def cmd_match(args) -> int:
    """Rank candidate records against a target."""
    try:
        target = MatchSubject.from_dict(_load_json(args.target_file))
        raw_candidates = _load_json(args.candidates_file)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not isinstance(raw_candidates, list):
        print("Error: candidates file must hold a JSON list", file=sys.stderr)
        return 1

    policy = Config.load().match_policy()
    subjects = [MatchSubject.from_dict(item) for item in raw_candidates]
    candidates = [
        MatchCandidate(
            item=index,
            confidence=match_confidence(target, subject, policy),
            tenure=subject.tenure,
        )
        for index, subject in enumerate(subjects)
    ]

    _print_json([
        {
            "index": candidate.item,
            "address": subjects[candidate.item].address,
            "postcode": subjects[candidate.item].postcode,
            "confidence": candidate.confidence.value,
        }
        for candidate in rank_candidates(target, candidates, policy)
    ])
    return 0


def cmd_evaluate(args) -> int:
    """Score each property in a JSON list of field sets."""
    try:
        records = _load_json(args.properties_file)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not isinstance(records, list) or not all(isinstance(item, dict) for item in records):
        print("Error: properties file must hold a JSON list of objects", file=sys.stderr)
        return 1

    pipeline = _build_pipeline(Config.load())
    results = []
    evaluations = []
    for item in records:
        try:
            prop = reconcile(None, item, item.get("source") or CLI_SOURCE)
        except CreationRejected as e:
            results.append({"address": item.get("address"), "rejected": e.reasons})
            continue
        evaluation = pipeline.evaluate(prop)
        evaluations.append(evaluation)
        results.append({"address": prop.address, **evaluation.to_dict()})

    if args.summary:
        _print_summary(evaluations)
    else:
        _print_json(results)
    return 0


def cmd_ingest(args) -> int:
    """
    Ingest provider payloads in order and score the resulting properties.

    The input maps source ids to lists of raw payloads.
    """
    try:
        batches = _load_json(args.batches_file)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not isinstance(batches, dict) or not all(isinstance(v, list) for v in batches.values()):
        print("Error: batches file must map source ids to JSON lists", file=sys.stderr)
        return 1

    pipeline = _build_pipeline(Config.load())
    summaries = []
    for source, records in batches.items():
        try:
            summaries.append(pipeline.ingest_batch(records, source).to_dict())
        except KeyError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    evaluations = pipeline.evaluate_all()
    if args.summary:
        _print_summary(evaluations)
        return 0

    _print_json({
        "batches": summaries,
        "properties": [
            {"property": evaluation.property.to_dict(), **evaluation.to_dict()}
            for evaluation in evaluations
        ],
    })
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="HMO Deal Engine - property identity resolution and scoring",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m hmo_engine.cli normalise "Flat 2, 10 High St" --postcode "e8 1ej"
    python -m hmo_engine.cli match target.json candidates.json
    python -m hmo_engine.cli ingest batches.json
        """,
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    norm_parser = subparsers.add_parser("normalise", help="Normalise one address")
    norm_parser.add_argument("address", help="Free-text address")
    norm_parser.add_argument("--postcode", default=None, help="Postcode, if separate")
    norm_parser.set_defaults(func=cmd_normalise)

    match_parser = subparsers.add_parser("match", help="Rank candidates against a target")
    match_parser.add_argument("target_file", help="JSON object with address, postcode, bedrooms")
    match_parser.add_argument("candidates_file", help="JSON list of candidate objects")
    match_parser.set_defaults(func=cmd_match)

    eval_parser = subparsers.add_parser("evaluate", help="Score properties from a JSON list")
    eval_parser.add_argument("properties_file", help="JSON list of property field sets")
    eval_parser.add_argument("--summary", action="store_true", help="One line per property instead of JSON")
    eval_parser.set_defaults(func=cmd_evaluate)

    ingest_parser = subparsers.add_parser("ingest", help="Ingest provider payloads and score")
    ingest_parser.add_argument("batches_file", help="JSON object of source id to payload list")
    ingest_parser.add_argument("--summary", action="store_true", help="One line per property instead of JSON")
    ingest_parser.set_defaults(func=cmd_ingest)

    args = parser.parse_args()
    logging.basicConfig(
        level=(args.log_level or Config.load().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
