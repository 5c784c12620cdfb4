from __future__ import annotations
import asyncio, logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Sequence

from ..domain.errors import NodeError, Web3Error
from ..domain.filters import TopicGroup
from ..domain.models import BlockRange
from ..ports.storage import EventSink
from .planning import plan_chunks

if TYPE_CHECKING:
    from .client import Web3

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScanSummary:
    start_block: int
    end_block: int
    processed_ok: int = 0
    total_logs: int = 0
    split_chunks: int = 0
    failed: list[tuple[int, int, str]] = field(default_factory=list)

    @property
    def processed_failed(self) -> int:
        return len(self.failed)


async def scan_events(
    *,
    web3: "Web3",
    sink: EventSink | None,
    addresses: Sequence[str | bytes],
    signatures: Sequence[str] = (),
    topic_groups: Sequence[TopicGroup] = (),
    start_block: int,
    end_block: int | None,
    step: int,
    concurrency: int,
    min_split_span: int = 100,
    on_chunk: Callable[[BlockRange, int], None] | None = None,
) -> ScanSummary:
    """Range scan split into `step`-block chunks fetched `concurrency` at a time.

    Pass `signatures` (any-of at position 0) or raw `topic_groups`. The end block is
    resolved once up front. A chunk the node rejects (typically "too many results")
    is halved until it fits or gets narrower than `min_split_span`, then recorded
    as failed. Connection-level failures are recorded without splitting. Anything else
    (a failing sink, for one) cancels the remaining chunks and surfaces as an ExceptionGroup.
    """
    if bool(signatures) == bool(topic_groups):
        raise ValueError("pass exactly one of signatures or topic_groups")
    if end_block is None:
        end_block = await web3.eth_get_finalized_block_number()
    if start_block > end_block:
        raise ValueError(f"start_block ({start_block}) must be <= end_block ({end_block})")

    summary = ScanSummary(start_block=start_block, end_block=end_block)
    sem = asyncio.Semaphore(concurrency)

    async def fetch(fb: int, tb: int):
        async with sem:
            if signatures:
                return await web3.check_for_events(fb, tb, addresses, signatures)
            return await web3.check_for_arbitrary_events(fb, tb, addresses, topic_groups)

    async def run_chunk(chunk: BlockRange) -> None:
        stack: list[tuple[int, int]] = [(chunk.start, chunk.end)]
        while stack:
            a, b = stack.pop()
            try:
                logs = await fetch(a, b)
            except NodeError as e:
                if b - a + 1 > min_split_span:
                    mid = (a + b) // 2
                    stack.append((mid + 1, b)); stack.append((a, mid))
                    summary.split_chunks += 1
                    logger.debug("splitting %d-%d after node error: %s", a, b, e.message)
                    continue
                logger.warning("chunk %d-%d failed: %s", a, b, e)
                summary.failed.append((a, b, str(e)))
                continue
            except Web3Error as e:
                logger.warning("chunk %d-%d failed: %s", a, b, e)
                summary.failed.append((a, b, str(e)))
                continue
            if sink is not None:
                await sink.write_chunk(a, b, logs)
            summary.processed_ok += 1
            summary.total_logs += len(logs)
        if on_chunk is not None:
            on_chunk(chunk, summary.total_logs)

    chunks = plan_chunks(start_block, end_block, step)
    async with asyncio.TaskGroup() as tg:
        for c in chunks:
            tg.create_task(run_chunk(c))
    return summary
