"""
Bundle inclusion monitoring.

Each bundle transaction moves from PENDING to INCLUDED once its receipt
shows success. Reverted receipts and lookup errors leave it pending; the
monitor ends on full inclusion, timeout or cancellation.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from ...services.evm import from_hex_quantity
from ..recovery.errors import ChainQueryError, InclusionTimeoutError, PipelineStage
from ..recovery.runtime import RunContext
from .models import InclusionReport, InclusionStatus


logger = logging.getLogger(__name__)

ReceiptLookup = Callable[[str], Awaitable[Optional[Dict[str, Any]]]]


class InclusionMonitor:
    """Polls receipts for a set of transaction hashes until all are included."""

    def __init__(
        self,
        get_receipt: ReceiptLookup,
        run_context: Optional[RunContext] = None,
        timeout_seconds: float = 60.0,
        poll_seconds: float = 1.0,
        progress_interval_seconds: float = 5.0,
    ):
        self.get_receipt = get_receipt
        self.run_context = run_context or RunContext()
        self.timeout_seconds = timeout_seconds
        self.poll_seconds = poll_seconds
        self.progress_interval_seconds = progress_interval_seconds

    async def _poll(self, status: InclusionStatus, position: int) -> None:
        try:
            receipt = await self.get_receipt(status.tx_hash)
            if not receipt or from_hex_quantity(receipt.get("status")) != 1:
                return
            block_number = from_hex_quantity(receipt.get("blockNumber")) or 0
        except (ChainQueryError, ValueError) as e:
            logger.debug(f"Receipt lookup for tx {position} failed, still pending: {e}")
            return

        status.mark_included(block_number)
        logger.info(f"Transaction {position} included in block {block_number}")

    async def wait(self, tx_hashes: Sequence[str]) -> InclusionReport:
        """
        Block until every hash is included.

        Raises:
            InclusionTimeoutError: timeout elapsed first; carries the
                included count
            CancellationError: the run was cancelled; no lookups follow
        """
        ctx = self.run_context
        statuses = [InclusionStatus(tx_hash=tx_hash) for tx_hash in tx_hashes]
        report = InclusionReport(statuses=statuses)

        logger.info(f"Monitoring bundle inclusion (timeout: {self.timeout_seconds:g}s)")
        start = ctx.clock()
        last_progress = start

        while True:
            ctx.check_cancelled(PipelineStage.INCLUSION)

            elapsed = ctx.clock() - start
            remaining = self.timeout_seconds - elapsed
            if remaining <= 0:
                report.elapsed_seconds = elapsed
                logger.warning(
                    f"Inclusion timed out after {elapsed:.1f}s "
                    f"(included: {report.included_count}/{report.total})"
                )
                raise InclusionTimeoutError(report.included_count, report.total, self.timeout_seconds)

            await ctx.pause(min(self.poll_seconds, remaining), PipelineStage.INCLUSION)

            for position, status in enumerate(statuses, start=1):
                if status.is_included:
                    continue
                ctx.check_cancelled(PipelineStage.INCLUSION)
                await self._poll(status, position)

            now = ctx.clock()
            if report.all_included:
                report.elapsed_seconds = now - start
                logger.info(f"All transactions confirmed in {report.elapsed_seconds:.1f}s")
                return report

            if now - last_progress >= self.progress_interval_seconds:
                last_progress = now
                logger.info(
                    f"Monitoring... elapsed: {now - start:.0f}s, "
                    f"included: {report.included_count}/{report.total}"
                )
