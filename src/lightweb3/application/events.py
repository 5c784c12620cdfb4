# lightweb3/application/events.py
from __future__ import annotations
import asyncio, logging, time
from typing import TYPE_CHECKING, Callable, Iterable, Sequence

from ..domain.errors import EventNotFound, FilterTeardownFailed, Web3Error
from ..domain.filters import TopicGroup, alternatives_filter, build_filter, signature_filter
from ..domain.matchers import LogMatcher, MatcherLike, as_matcher
from ..domain.models import Log

if TYPE_CHECKING:
    from .client import Web3

logger = logging.getLogger(__name__)


def _first_match(logs: Iterable[Log], matcher: LogMatcher) -> Log | None:
    for log in logs:
        if matcher.matches(log):
            return log
    return None


class EventsMixin:
    """Event waits and range scans. Mixed into Web3."""

    async def wait_for_event(
        self: "Web3",
        wait_for: float,
        addresses: Sequence[str | bytes],
        signature: str,
        topic_groups: Sequence[TopicGroup] = (),
        matcher: MatcherLike | None = None,
        *,
        on_teardown_failure: Callable[[FilterTeardownFailed], None] | None = None,
    ) -> Log:
        """Install a filter, poll its changes every `poll_interval_s` until `matcher`
        accepts a log or `wait_for` seconds pass, then uninstall the filter.

        Raises EventNotFound on timeout. The filter is uninstalled on every exit path;
        if that fails after a match the log is still returned and the failure is
        handed to `on_teardown_failure` (logged as a warning when no callback is given).
        On timeout a teardown failure is raised instead, carrying the EventNotFound.
        """
        accept = as_matcher(matcher)
        spec = signature_filter(addresses, signature, topic_groups)
        filter_id = await self.eth_new_filter(spec)
        logger.info("installed filter %s for %s", filter_id.to_rpc(), signature)

        found: Log | None = None
        leak: FilterTeardownFailed | None = None
        try:
            found = await self._poll_filter(filter_id, wait_for, accept)
        finally:
            leak = await self._release_filter(filter_id)

        if found is not None:
            if leak is not None:
                if on_teardown_failure is not None:
                    on_teardown_failure(leak)
                else:
                    logger.warning("event %s matched but %s", signature, leak)
            return found
        not_found = EventNotFound(signature)
        if leak is not None:
            leak.outcome = not_found
            raise leak
        raise not_found

    async def _poll_filter(self: "Web3", filter_id: int, wait_for: float, accept: LogMatcher) -> Log | None:
        start = time.monotonic()
        polls = 0
        while time.monotonic() - start < wait_for:
            await asyncio.sleep(self.poll_interval_s)
            logs = await self.eth_get_filter_changes(filter_id)
            polls += 1
            hit = _first_match(logs, accept)
            if hit is not None:
                logger.debug("filter %s matched after %d polls", hex(filter_id), polls)
                return hit
        logger.debug("filter %s: no match in %.1fs (%d polls)", hex(filter_id), wait_for, polls)
        return None

    async def _release_filter(self: "Web3", filter_id: int) -> FilterTeardownFailed | None:
        """Uninstall `filter_id`. Failures are returned, never raised."""
        try:
            removed = await self.eth_uninstall_filter(filter_id)
        except Web3Error as e:
            logger.warning("uninstall of filter %s failed: %s", hex(filter_id), e)
            err = FilterTeardownFailed(filter_id, str(e))
            err.__cause__ = e
            return err
        if not removed:
            logger.warning("node reported filter %s was not uninstalled", hex(filter_id))
            return FilterTeardownFailed(filter_id, "node returned false")
        logger.info("uninstalled filter %s", hex(filter_id))
        return None

    async def wait_for_event_alt(
        self: "Web3",
        wait_time: float,
        addresses: Sequence[str | bytes],
        signature: str,
        topic_groups: Sequence[TopicGroup] = (),
        matcher: MatcherLike | None = None,
    ) -> Log:
        """Sleep `wait_time` seconds unconditionally, then run one eth_getLogs and return
        the first accepted log. No filter is installed and nothing is retried.

        Every call rescans the whole default range, so `matcher` may see logs that an
        earlier call already accepted.
        """
        accept = as_matcher(matcher)
        spec = signature_filter(addresses, signature, topic_groups)
        await asyncio.sleep(wait_time)
        hit = _first_match(await self.eth_get_logs(spec), accept)
        if hit is None:
            raise EventNotFound(signature)
        return hit

    async def check_for_event(
        self: "Web3",
        addresses: Sequence[str | bytes],
        signature: str,
        topic_groups: Sequence[TopicGroup] = (),
    ) -> Log | None:
        """First log already on chain for `signature` and the indexed arguments, if any."""
        logs = await self.eth_get_logs(signature_filter(addresses, signature, topic_groups))
        return logs[0] if logs else None

    # ──────────────────────────────
    # Range scans
    # ──────────────────────────────

    async def _resolve_end_block(self: "Web3", end_block: int | None) -> int:
        if end_block is not None:
            return end_block
        return await self.eth_get_finalized_block_number()

    async def check_for_events(
        self: "Web3",
        start_block: int,
        end_block: int | None,
        addresses: Sequence[str | bytes],
        signatures: Sequence[str],
    ) -> list[Log]:
        """Logs of any of `signatures` in [start_block, end_block]; the end defaults to
        the finalized head, read once before the query."""
        to_block = await self._resolve_end_block(end_block)
        spec = alternatives_filter(addresses, signatures, from_block=start_block, to_block=to_block)
        return await self.eth_get_logs(spec)

    async def check_for_arbitrary_events(
        self: "Web3",
        start_block: int,
        end_block: int | None,
        addresses: Sequence[str | bytes],
        topic_groups: Sequence[TopicGroup],
    ) -> list[Log]:
        to_block = await self._resolve_end_block(end_block)
        spec = build_filter(addresses, topic_groups, from_block=start_block, to_block=to_block)
        return await self.eth_get_logs(spec)
