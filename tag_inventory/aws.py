"""Collect tagged resources through the Resource Groups Tagging API.

One boto3 ``resourcegroupstaggingapi`` client per region is paged with
``GetResources`` until the API stops returning a pagination token.  Every
reported ARN is normalized into a :class:`TaggedResource`.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from tag_inventory.config import DEFAULT_PAGE_SIZE, Settings
from tag_inventory.errors import (
    ApiRequestFailed,
    AwsSetupFailed,
    CollectionCancelled,
    InvalidIdentifierFormat,
    MalformedResourceIdentifier,
)
from tag_inventory.models import Inventory, RegionInventory, SkippedIdentifier, TaggedResource
from tag_inventory.normalizer import resource_from_arn, tags_to_dict

logger = logging.getLogger(__name__)

TAGGING_SERVICE = "resourcegroupstaggingapi"

# Error codes worth retrying; anything else (AccessDenied, validation) fails at once.
TRANSIENT_ERROR_CODES = frozenset([
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "TooManyRequestsException",
    "RequestLimitExceeded",
    "RequestThrottled",
    "ServiceUnavailable",
    "InternalServiceException",
    "InternalError",
    "RequestTimeout",
    "RequestTimeoutException",
])

_TRANSIENT_BOTOCORE_ERRORS = (
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

ClientFactory = Callable[[str], Any]


# ══════════════════════════════════════════════════════════════════════════════
#  RETRY
# ══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for a single page request."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 20.0

    def delay(self, attempt: int) -> float:
        """Seconds to wait before retry number *attempt* (0-indexed), with up to 25% jitter."""
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        return delay + random.uniform(0, delay * 0.25)


def is_transient_error(exc: Exception) -> bool:
    """Return True if *exc* is a throttling, 5xx or connection error."""
    if isinstance(exc, _TRANSIENT_BOTOCORE_ERRORS):
        return True
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        if error.get("Code") in TRANSIENT_ERROR_CODES:
            return True
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        return status >= 500 or status == 429
    return False


def _get_page(
    client: Any,
    region: str,
    params: dict[str, Any],
    retry: RetryPolicy,
    sleep: Callable[[float], None] | None = None,
    cancel: threading.Event | None = None,
) -> dict[str, Any]:
    attempt = 0
    while True:
        attempt += 1
        try:
            return client.get_resources(**params)
        except (ClientError, BotoCoreError) as exc:
            if attempt > retry.max_retries or not is_transient_error(exc):
                raise ApiRequestFailed(region, attempt, str(exc)) from exc
            delay = retry.delay(attempt - 1)
            logger.warning(
                "GetResources failed in %s (attempt %d/%d): %s; retrying in %.1fs",
                region, attempt, retry.max_retries + 1, exc, delay,
            )
            if sleep is not None:
                sleep(delay)
            elif cancel is not None:
                cancel.wait(delay)
            else:
                time.sleep(delay)
            if cancel is not None and cancel.is_set():
                raise CollectionCancelled(region)


# ══════════════════════════════════════════════════════════════════════════════
#  REGION COLLECTOR
# ══════════════════════════════════════════════════════════════════════════════


def collect_region(
    client: Any,
    region: str,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    tag_filters: list[dict[str, Any]] | None = None,
    resource_types: list[str] | None = None,
    retry: RetryPolicy | None = None,
    strict: bool = False,
    cancel: threading.Event | None = None,
    sleep: Callable[[float], None] | None = None,
) -> RegionInventory:
    """Page through ``GetResources`` for one region.

    Every pagination token is requested exactly once; an empty or missing
    token ends the loop.

    Args:
        client: A boto3 ``resourcegroupstaggingapi`` client (or anything with
            a compatible ``get_resources`` method).
        region: Region label stored on every record.
        page_size: ``ResourcesPerPage`` for each request.
        tag_filters: Optional ``TagFilters`` passed through to the API.
        resource_types: Optional ``ResourceTypeFilters``.
        retry: Backoff policy for transient API errors.
        strict: Re-raise ARN parsing errors instead of skipping the record.
        cancel: When set, stop before the next request or during a backoff
            wait.
        sleep: Called with the backoff delay between retries.  Defaults to
            waiting on *cancel* (or ``time.sleep`` without one).

    Raises:
        ApiRequestFailed: a page could not be fetched.
        CollectionCancelled: *cancel* was set.
        InvalidIdentifierFormat, MalformedResourceIdentifier: only when *strict*.
    """
    retry = retry or RetryPolicy()
    resources: list[TaggedResource] = []
    skipped: list[SkippedIdentifier] = []
    seen_tokens: set[str] = set()
    token = ""
    pages = 0

    while True:
        if cancel is not None and cancel.is_set():
            raise CollectionCancelled(region)

        params: dict[str, Any] = {"ResourcesPerPage": page_size}
        if token:
            params["PaginationToken"] = token
        if tag_filters:
            params["TagFilters"] = tag_filters
        if resource_types:
            params["ResourceTypeFilters"] = resource_types

        page = _get_page(client, region, params, retry, sleep, cancel)
        pages += 1
        mappings = page.get("ResourceTagMappingList", [])
        logger.debug("%s: page %d returned %d resources", region, pages, len(mappings))

        for mapping in mappings:
            arn = mapping.get("ResourceARN", "")
            try:
                resources.append(
                    resource_from_arn(arn, region, tags=tags_to_dict(mapping.get("Tags")))
                )
            except (InvalidIdentifierFormat, MalformedResourceIdentifier) as exc:
                if strict:
                    raise
                logger.warning("Skipping resource in %s: %s", region, exc)
                skipped.append(SkippedIdentifier(region=region, arn=arn, reason=str(exc)))

        token = page.get("PaginationToken") or ""
        if not token:
            break
        if token in seen_tokens:
            raise ApiRequestFailed(
                region, None, f"pagination token {token!r} repeated after {pages} page(s)"
            )
        seen_tokens.add(token)

    logger.info(
        "%s: found %d resources in %d page(s)%s",
        region,
        len(resources),
        pages,
        f", skipped {len(skipped)}" if skipped else "",
    )
    return RegionInventory(region=region, resources=resources, pages=pages, skipped=skipped)


# ══════════════════════════════════════════════════════════════════════════════
#  COLLECTION DRIVER
# ══════════════════════════════════════════════════════════════════════════════


def collect_inventory(
    regions: Iterable[str],
    client_factory: ClientFactory,
    *,
    max_workers: int = 1,
    cancel: threading.Event | None = None,
    **collector_kwargs: Any,
) -> Inventory:
    """Collect every region and merge the results in region order.

    Regions run one after another, or in a thread pool when *max_workers* is
    greater than one.  The first region-level error cancels the remaining
    regions and is re-raised.  *client_factory* is always called on the
    calling thread.
    """
    ordered = list(dict.fromkeys(regions))
    cancel = cancel or threading.Event()
    clients = {region: client_factory(region) for region in ordered}

    def _collect(region: str) -> RegionInventory:
        logger.info("Collecting tagged resources in %s …", region)
        return collect_region(clients[region], region, cancel=cancel, **collector_kwargs)

    try:
        if max_workers <= 1 or len(ordered) <= 1:
            results = [_collect(region) for region in ordered]
        else:
            results = _collect_parallel(ordered, _collect, max_workers, cancel)
    except BaseException:
        cancel.set()
        raise

    inventory = Inventory(regions=results)
    logger.info(
        "Collection complete: %d resources across %d region(s)",
        len(inventory.resources),
        len(results),
    )
    return inventory


def _collect_parallel(
    regions: list[str],
    collect: Callable[[str], RegionInventory],
    max_workers: int,
    cancel: threading.Event,
) -> list[RegionInventory]:
    with ThreadPoolExecutor(max_workers=min(max_workers, len(regions))) as pool:
        futures = [pool.submit(collect, region) for region in regions]
        # The event must be set before the executor's shutdown joins the
        # workers, or an interrupted wait blocks until every region finishes.
        try:
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            # Report the first failure in region order, not a CollectionCancelled
            # raised by a sibling after we set the event.
            failed = [f for f in futures if f in done and f.exception() is not None]
            if failed:
                raise failed[0].exception()  # type: ignore[misc]
            return [f.result() for f in futures]
        except BaseException:
            cancel.set()
            for future in futures:
                future.cancel()
            raise


# ══════════════════════════════════════════════════════════════════════════════
#  BOTO3 WIRING
# ══════════════════════════════════════════════════════════════════════════════


def _get_boto3_session(profile: str = "") -> Any:
    """Create a boto3 session, optionally bound to a named profile."""
    kwargs: dict[str, str] = {}
    if profile:
        kwargs["profile_name"] = profile
    return boto3.Session(**kwargs)


def build_client_factory(settings: Settings) -> ClientFactory:
    """Return a callable that builds one tagging client per region.

    botocore's own retries are disabled (``max_attempts=1``); the collector
    owns retry and backoff.

    Raises:
        AwsSetupFailed: the session (e.g. an unknown profile) or a client
            could not be created.
    """
    try:
        session = _get_boto3_session(profile=settings.profile)
    except BotoCoreError as exc:
        raise AwsSetupFailed(f"Could not create AWS session: {exc}") from exc
    config = Config(
        connect_timeout=settings.call_timeout,
        read_timeout=settings.call_timeout,
        retries={"mode": "standard", "max_attempts": 1},
    )

    def _factory(region: str) -> Any:
        try:
            return session.client(TAGGING_SERVICE, region_name=region, config=config)
        except BotoCoreError as exc:
            raise AwsSetupFailed(f"Could not create tagging client for {region}: {exc}") from exc

    return _factory


def collect_from_settings(
    settings: Settings,
    client_factory: ClientFactory | None = None,
    cancel: threading.Event | None = None,
) -> Inventory:
    """Run a full collection as described by *settings*."""
    factory = client_factory or build_client_factory(settings)
    return collect_inventory(
        settings.regions,
        factory,
        max_workers=settings.max_workers,
        cancel=cancel,
        page_size=settings.page_size,
        tag_filters=settings.tag_filter_params() or None,
        resource_types=settings.resource_types or None,
        retry=RetryPolicy(
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        ),
        strict=settings.strict,
    )
