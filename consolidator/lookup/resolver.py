"""Fallback chain: try registry lookup strategies in order, stop at the first match.

Strategies run strictly one after another in the caller's thread; only the
HTTP call itself happens on the gateway's worker pool. A rejected or
timed-out strategy hands over to the next one. Nothing found is an ordinary
outcome (``matched=False``), not an exception.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from consolidator.core.counters import ConsolidationCounter, CounterSink
from consolidator.core.errors import ConfigurationError, ConsolidationError
from consolidator.lookup.classifier import Accepted, Rejected, classify
from consolidator.lookup.correlator import TimedOut
from consolidator.lookup.gateway import RegistryGateway
from consolidator.lookup.models import CitationQuery, ConsolidationOutcome, LookupStrategy
from consolidator.lookup.normalize import clean_identifier, remove_accents

logger = logging.getLogger(__name__)

_DEFAULT_BATCH_WORKERS = 4


# ── Strategy Table ───────────────────────────────────────────────────


@dataclass(frozen=True)
class StrategyDescriptor:
    """How to decide, build and count one lookup strategy."""

    strategy: LookupStrategy
    is_eligible: Callable[[CitationQuery], bool]
    build_params: Callable[[CitationQuery], dict]
    dispatched: ConsolidationCounter
    succeeded: ConsolidationCounter


def _author(query: CitationQuery) -> Optional[str]:
    if not query.first_author_surname:
        return None
    return remove_accents(query.first_author_surname).strip() or None


def _title(query: CitationQuery) -> Optional[str]:
    if not query.title:
        return None
    return remove_accents(query.title).strip() or None


def _identifier_params(query: CitationQuery) -> dict:
    return {"identifier": clean_identifier(query.doi)}


def _author_title_params(query: CitationQuery) -> dict:
    return {"title": _title(query), "author": _author(query)}


def _journal_params(query: CitationQuery) -> dict:
    return {
        "journal": query.journal,
        "volume": query.effective_volume,
        "first_page": query.first_page,
        "author": _author(query),
    }


STRATEGIES: tuple[StrategyDescriptor, ...] = (
    StrategyDescriptor(
        strategy=LookupStrategy.BY_IDENTIFIER,
        is_eligible=lambda q: clean_identifier(q.doi) is not None,
        build_params=_identifier_params,
        dispatched=ConsolidationCounter.CONSOLIDATION_PER_DOI,
        succeeded=ConsolidationCounter.CONSOLIDATION_PER_DOI_SUCCESS,
    ),
    StrategyDescriptor(
        strategy=LookupStrategy.BY_AUTHOR_TITLE,
        is_eligible=lambda q: bool(_title(q) and _author(q)),
        build_params=_author_title_params,
        dispatched=ConsolidationCounter.CONSOLIDATION_PER_AUTHOR_TITLE,
        succeeded=ConsolidationCounter.CONSOLIDATION_PER_AUTHOR_TITLE_SUCCESS,
    ),
    StrategyDescriptor(
        strategy=LookupStrategy.BY_JOURNAL_VOLUME_FIRST_PAGE,
        is_eligible=lambda q: bool(q.journal and q.effective_volume and q.first_page),
        build_params=_journal_params,
        dispatched=ConsolidationCounter.CONSOLIDATION_PER_JOURNAL,
        succeeded=ConsolidationCounter.CONSOLIDATION_PER_JOURNAL_SUCCESS,
    ),
)


# ── Resolver ─────────────────────────────────────────────────────────


class FallbackResolver:
    """Consolidate citations against the registry through the strategy table."""

    def __init__(
        self,
        gateway: RegistryGateway,
        counters: CounterSink | None = None,
        timeout: float | None = None,
        strategies: tuple[StrategyDescriptor, ...] = STRATEGIES,
    ):
        self.gateway = gateway
        self.counters = counters
        self.timeout = timeout
        self.strategies = strategies

    def consolidate(self, query: CitationQuery) -> ConsolidationOutcome:
        """Try each eligible strategy in order until one is accepted.

        Raises ConfigurationError when registry credentials are missing and
        ConsolidationError for any other unexpected failure.
        """
        self._count(ConsolidationCounter.CONSOLIDATION)
        attempted: list[LookupStrategy] = []

        for descriptor in self.strategies:
            strategy = descriptor.strategy
            if not descriptor.is_eligible(query):
                logger.debug("Skipping %s: required fields missing", strategy.value)
                continue

            attempted.append(strategy)
            try:
                verdict = self._attempt(descriptor, query)
            except ConfigurationError:
                raise
            except Exception as exc:
                raise ConsolidationError(
                    f"Consolidation failed during {strategy.value} lookup"
                ) from exc

            if isinstance(verdict, Accepted):
                self._count(ConsolidationCounter.CONSOLIDATION_SUCCESS)
                self._count(descriptor.succeeded)
                logger.info(
                    "Consolidated via %s (%d record(s))",
                    strategy.value,
                    len(verdict.records),
                )
                return ConsolidationOutcome(
                    matched=True,
                    strategy_used=strategy,
                    enriched_records=verdict.records,
                    attempted=attempted,
                )

            logger.info("%s rejected: %s", strategy.value, verdict.reason)

        logger.info("No registry match after %d lookup(s)", len(attempted))
        return ConsolidationOutcome(matched=False, attempted=attempted)

    def consolidate_many(
        self,
        queries: Iterable[CitationQuery],
        max_workers: int | None = None,
    ) -> list[ConsolidationOutcome]:
        """Consolidate independent citations concurrently, preserving input order."""
        queries = list(queries)
        if not queries:
            return []
        workers = min(max_workers or _DEFAULT_BATCH_WORKERS, len(queries))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="consolidate") as ex:
            return list(ex.map(self.consolidate, queries))

    # ── Internals ────────────────────────────────────────────

    def _attempt(
        self, descriptor: StrategyDescriptor, query: CitationQuery
    ) -> Accepted | Rejected:
        params = descriptor.build_params(query)
        handle = self.gateway.lookup(descriptor.strategy, params)
        self._count(descriptor.dispatched)

        result = self.gateway.correlator.wait(handle, self.timeout)
        if isinstance(result, TimedOut):
            return Rejected(reason=f"timed out after {result.timeout:.1f}s")
        return classify(result)

    def _count(self, name: ConsolidationCounter) -> None:
        if self.counters is not None:
            self.counters.increment(name)