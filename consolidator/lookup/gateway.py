"""Registry gateway: query templates, HTTP calls on a worker pool, completion.

Each ``lookup`` registers a PendingRequest with the correlator and hands one
HTTP GET to a bounded thread pool. The worker always calls
``RequestCorrelator.complete_handle`` exactly once, whatever happens, so a
waiter is never left hanging past its own timeout.

The pool and HTTP session are process-wide resources; call ``close()`` (or
use the gateway as a context manager) at shutdown.
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional
from urllib.parse import quote, quote_plus

import requests

from consolidator.core.config import RegistryConfig
from consolidator.core.errors import MalformedResponseError, TransportError
from consolidator.lookup.correlator import PendingRequest, RequestCorrelator
from consolidator.lookup.models import (
    BiblioRecord,
    LookupResponse,
    LookupStatus,
    LookupStrategy,
)
from consolidator.lookup.unixref import parse_unixref

logger = logging.getLogger(__name__)

Decoder = Callable[[bytes], list[BiblioRecord]]

# ── Query Templates ──────────────────────────────────────────────────

IDENTIFIER_QUERY = (
    "openurl?url_ver=Z39.88-2004&pid={id}:{password}&rft_id=info:doi/{identifier}"
    "&noredirect=true&format=unixref"
)
AUTHOR_TITLE_QUERY = (
    "servlet/query?usr={id}&pwd={password}&type=a&format=unixref"
    "&qdata={title}|{author}||key|"
)
# qdata layout: ISSN|TITLE/ABBREV|FIRST AUTHOR|VOLUME|ISSUE|START PAGE|YEAR|RESOURCE TYPE|KEY|DOI
JOURNAL_AUTHOR_QUERY = (
    "servlet/query?usr={id}&pwd={password}&type=a&format=unixref"
    "&qdata=|{journal}|{author}|{volume}||{first_page}|||KEY|"
)
JOURNAL_QUERY = (
    "servlet/query?usr={id}&pwd={password}&type=a&format=unixref"
    "&qdata=|{journal}||{volume}||{first_page}|||KEY|"
)

# DOI characters left unescaped; "#", "&", "?" and "+" would break the query.
IDENTIFIER_SAFE = "/:;()<>[]"


# ── Gateway ──────────────────────────────────────────────────────────


class RegistryGateway:
    """Issues registry lookups on a shared worker pool."""

    def __init__(
        self,
        config: RegistryConfig,
        correlator: RequestCorrelator | None = None,
        session: requests.Session | None = None,
        decoder: Decoder = parse_unixref,
    ):
        self.config = config
        self.correlator = correlator or RequestCorrelator(config.timeout_seconds)
        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = config.user_agent
        self._decoder = decoder
        self._executor = ThreadPoolExecutor(
            max_workers=config.max_workers, thread_name_prefix="registry"
        )
        self._closed = False
        self._close_lock = threading.Lock()

    # ── Query construction ───────────────────────────────────

    def build_query_path(self, strategy: LookupStrategy, params: dict) -> str:
        """Fill the strategy's query template; raises ConfigurationError
        when credentials are missing."""
        account_id, password = self.config.require_credentials()
        creds = {"id": quote(account_id, safe=""), "password": quote(password, safe="")}

        if strategy is LookupStrategy.BY_IDENTIFIER:
            return IDENTIFIER_QUERY.format(
                identifier=quote(params["identifier"], safe=IDENTIFIER_SAFE), **creds
            )

        if strategy is LookupStrategy.BY_AUTHOR_TITLE:
            return AUTHOR_TITLE_QUERY.format(
                title=quote_plus(params["title"]),
                author=quote_plus(params["author"]),
                **creds,
            )

        if strategy is LookupStrategy.BY_JOURNAL_VOLUME_FIRST_PAGE:
            journal = quote_plus(params["journal"])
            volume = quote_plus(params["volume"])
            author = params.get("author")
            if author:
                return JOURNAL_AUTHOR_QUERY.format(
                    journal=journal,
                    author=quote_plus(author),
                    volume=volume,
                    first_page=params["first_page"],
                    **creds,
                )
            return JOURNAL_QUERY.format(
                journal=journal,
                volume=volume,
                first_page=params["first_page"],
                **creds,
            )

        raise ValueError(f"Unknown lookup strategy: {strategy}")

    def build_url(self, strategy: LookupStrategy, params: dict) -> str:
        return f"{self.config.base_url}/{self.build_query_path(strategy, params)}"

    # ── Dispatch ─────────────────────────────────────────────

    def lookup(
        self,
        strategy: LookupStrategy,
        params: dict,
        key: Optional[str] = None,
    ) -> PendingRequest:
        """Register and dispatch one lookup; returns the handle to wait on."""
        url = self.build_url(strategy, params)
        key = key or f"{strategy.value}:{uuid.uuid4().hex}"
        handle = self.correlator.submit(key, url)

        logger.info("Sending %s lookup: %s", strategy.value, self._mask(url))
        try:
            future = self._executor.submit(self._perform, handle, url)
        except RuntimeError as exc:
            # pool already shut down
            self.correlator.complete_handle(
                handle,
                LookupResponse.failure(LookupStatus.TRANSPORT_ERROR, f"Gateway closed: {exc}"),
            )
            return handle

        future.add_done_callback(lambda f: self._complete_if_cancelled(handle, f))
        return handle

    def _complete_if_cancelled(self, handle: PendingRequest, future: Future) -> None:
        # queued lookups dropped by close() never reach _perform
        if future.cancelled():
            self.correlator.complete_handle(
                handle,
                LookupResponse.failure(LookupStatus.TRANSPORT_ERROR, "Lookup cancelled"),
            )

    def _perform(self, handle: PendingRequest, url: str) -> None:
        """Worker body: fetch, decode, complete. Never raises."""
        try:
            response = self._fetch(url)
        except Exception as exc:
            logger.error(
                "Unexpected failure during lookup %s: %s", handle.key, exc, exc_info=True
            )
            response = LookupResponse.failure(LookupStatus.TRANSPORT_ERROR, str(exc))
        self.correlator.complete_handle(handle, response)

    def _fetch(self, url: str) -> LookupResponse:
        try:
            resp = self._get(url)
        except TransportError as exc:
            logger.warning("Registry connection failed: %s", exc)
            return LookupResponse.failure(LookupStatus.TRANSPORT_ERROR, str(exc))

        if resp.status_code >= 400:
            message = f"HTTP {resp.status_code}: {resp.reason}"
            logger.warning("Registry returned %s", message)
            return LookupResponse.failure(LookupStatus.ERROR, message)

        try:
            records = self._decoder(resp.content)
        except MalformedResponseError as exc:
            logger.warning("Malformed registry response: %s", exc)
            return LookupResponse.failure(LookupStatus.MALFORMED_RESPONSE, str(exc))

        return LookupResponse.ok(records)

    def _get(self, url: str) -> requests.Response:
        try:
            return self._session.get(url, timeout=self.config.http_timeout_seconds)
        except requests.RequestException as exc:
            # requests puts the full URL, password included, into its messages
            raise TransportError(self._mask(str(exc))) from exc

    def _mask(self, text: str) -> str:
        password = self.config.password
        if not password:
            return text
        for form in {password, quote(password, safe="")}:
            text = text.replace(form, "***")
        return text

    # ── Cleanup ──────────────────────────────────────────────

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the worker pool and HTTP session. Safe to call twice."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._session.close()
        logger.debug("Registry gateway closed")

    def __enter__(self) -> "RegistryGateway":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
