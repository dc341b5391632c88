#!/usr/bin/env python3
"""Consolidate a batch of citations against the registry.

Input is a JSON-lines file, one CitationQuery object per line. Output is a
JSON-lines stream with one line per non-blank input line, in input order: a
ConsolidationOutcome, or {"line": N, "error": "..."} for a line that could
not be parsed.
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from consolidator.core.config import load_config
from consolidator.core.counters import InMemoryCounters
from consolidator.core.errors import ConfigurationError
from consolidator.lookup.gateway import RegistryGateway
from consolidator.lookup.models import CitationQuery, ConsolidationOutcome
from consolidator.lookup.resolver import FallbackResolver

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("consolidate")


# ── Runner ───────────────────────────────────────────────────────────


def run(
    input_path: str,
    config_path: str | None,
    output_path: str | None,
    workers: int | None,
) -> dict:
    """Consolidate every citation in ``input_path``; returns counter totals."""
    t_start = time.time()

    config = load_config(config_path)
    config.require_credentials()
    logger.info("Registry: %s (timeout %.1fs)", config.base_url, config.timeout_seconds)

    entries = _read_queries(Path(input_path))
    queries = [e for e in entries if isinstance(e, CitationQuery)]
    logger.info("Loaded %d citation(s) from %s", len(queries), input_path)

    counters = InMemoryCounters()
    with RegistryGateway(config) as gateway:
        resolver = FallbackResolver(gateway, counters=counters)
        outcomes = resolver.consolidate_many(queries, max_workers=workers)

    out = open(output_path, "w") if output_path else sys.stdout
    try:
        for line in _render(entries, outcomes):
            out.write(line + "\n")
    finally:
        if output_path:
            out.close()

    matched = sum(1 for o in outcomes if o.matched)
    stats = counters.snapshot()
    logger.info("=" * 60)
    logger.info(
        "Matched %d/%d citation(s) in %.1fs", matched, len(outcomes), time.time() - t_start
    )
    logger.info("Counters: %s", json.dumps(stats, indent=2, sort_keys=True))
    return stats


def _read_queries(path: Path) -> list[CitationQuery | dict]:
    """Parse each non-blank line; unparseable lines become error entries."""
    entries: list[CitationQuery | dict] = []
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(CitationQuery.model_validate_json(line))
            except ValueError as exc:
                logger.warning("Cannot parse line %d: %s", line_no, exc)
                entries.append({"line": line_no, "error": str(exc)})
    return entries


def _render(
    entries: list[CitationQuery | dict], outcomes: list[ConsolidationOutcome]
) -> list[str]:
    """Interleave outcomes with error entries so output lines follow input lines."""
    remaining = iter(outcomes)
    lines = []
    for entry in entries:
        if isinstance(entry, CitationQuery):
            lines.append(next(remaining).model_dump_json())
        else:
            lines.append(json.dumps(entry))
    return lines


# ── CLI ──────────────────────────────────────────────────────────────


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--input", required=True, help="JSON-lines file of citations")
    parser.add_argument("--config", default=None, help="Registry config YAML")
    parser.add_argument("--output", default=None, help="Output JSON-lines (default: stdout)")
    parser.add_argument("--workers", type=int, default=None, help="Concurrent consolidations")
    args = parser.parse_args()

    try:
        run(args.input, args.config, args.output, args.workers)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        sys.exit(2)


if __name__ == "__main__":
    main()
