"""
MONTHLY RETURN CALCULATOR

Allocates one month's pooled platform return to clients by capital share
and persists the result as a MonthlyReturnSnapshot.

RESPONSIBILITIES:
- Combine corpus (as of month end) with the month's platform aggregate
- Derive per-client return and closing balance
- Replace the month's snapshot as a whole document

RULES:
- No intermediate rounding of currency amounts
- SIMPLE policy: profit on the month's raw investment share
- COMPOUND policy: profit on previous closing balance plus the month's net flow
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Protocol

from app.domain.models import (
    ClientReturn,
    CompoundingPolicy,
    CorpusData,
    MonthlyReturnSnapshot,
    PlatformAggregate,
    PlatformReturn,
)
from app.domain.services.corpus_resolver import CorpusResolver
from app.domain.services.platform_return_aggregator import PlatformReturnAggregator
from app.utils.time import end_of_month, first_of_month, now_local_naive, previous_month

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')


class MonthlyReturnStore(Protocol):
    """Protocol for monthly snapshot persistence - ASYNC"""

    async def get_for_month(self, month: date) -> Optional[MonthlyReturnSnapshot]:
        ...

    async def upsert(self, snapshot: MonthlyReturnSnapshot) -> MonthlyReturnSnapshot:
        """Insert or wholesale-replace the snapshot keyed by its month"""
        ...


def allocate_client_returns(
    corpus: CorpusData,
    return_pct: Decimal,
    policy: CompoundingPolicy = CompoundingPolicy.SIMPLE,
    previous: Optional[MonthlyReturnSnapshot] = None,
) -> List[ClientReturn]:
    """
    Per-client return lines for one month.

    investment_share is always the client's raw net capital, so the shares
    of one month sum to the corpus under either policy.
    """
    prior: Dict[int, ClientReturn] = {}
    if policy == CompoundingPolicy.COMPOUND and previous is not None:
        prior = {entry.client_id: entry for entry in previous.client_returns}

    lines: List[ClientReturn] = []
    for share in corpus.client_shares:
        base = share.total_investment
        last = prior.get(share.client_id)
        if last is not None:
            net_flow = share.total_investment - last.investment_share
            base = last.closing_balance + net_flow

        return_amount = base * return_pct / HUNDRED
        lines.append(
            ClientReturn(
                client_id=share.client_id,
                client_name=share.client_name,
                investment_share=share.total_investment,
                share_percentage=share.share_percentage,
                return_amount=return_amount,
                closing_balance=base + return_amount,
            )
        )
    return lines


def platform_return_lines(aggregate: PlatformAggregate) -> List[PlatformReturn]:
    return [
        PlatformReturn(
            platform_id=p.platform_id,
            platform_name=p.platform_name,
            return_percentage=p.return_percentage,
            return_amount=p.current_value * p.return_percentage / HUNDRED,
            current_value=p.current_value,
        )
        for p in aggregate.platforms
    ]


class MonthlyReturnCalculator:
    """
    Stateless calculator over explicit store handles.

    The snapshot store is the only thing it writes.
    """

    def __init__(
        self,
        corpus_resolver: CorpusResolver,
        platform_aggregator: PlatformReturnAggregator,
        snapshot_store: MonthlyReturnStore,
        policy: CompoundingPolicy = CompoundingPolicy.SIMPLE,
        clock: Callable[[], datetime] = now_local_naive,
    ):
        self.corpus_resolver = corpus_resolver
        self.platform_aggregator = platform_aggregator
        self.snapshot_store = snapshot_store
        self.policy = policy
        self.clock = clock

    async def calculate_month(
        self,
        month_date: date,
        precomputed_return_pct: Optional[Decimal] = None,
        previous: Optional[MonthlyReturnSnapshot] = None,
    ) -> MonthlyReturnSnapshot:
        """
        Calculate and upsert the snapshot for month_date's calendar month.

        Args:
            month_date: Any date inside the month
            precomputed_return_pct: Manual override of the weighted return
            previous: Prior month's snapshot; loaded from the store when
                omitted and the COMPOUND policy needs it

        Returns:
            The persisted snapshot
        """
        start = first_of_month(month_date)
        end = end_of_month(month_date)

        corpus = await self.corpus_resolver.resolve_corpus(end)
        platforms = await self.platform_aggregator.aggregate_returns(start, end)

        if precomputed_return_pct is not None:
            return_pct = Decimal(precomputed_return_pct)
        else:
            return_pct = platforms.weighted_return_pct

        if self.policy == CompoundingPolicy.COMPOUND and previous is None:
            previous = await self.snapshot_store.get_for_month(previous_month(start))

        snapshot = MonthlyReturnSnapshot(
            month=start,
            total_corpus=corpus.total_corpus,
            total_platform_value=platforms.total_value,
            monthly_return_percentage=return_pct,
            calculated_at=self.clock(),
            client_returns=allocate_client_returns(corpus, return_pct, self.policy, previous),
            platform_returns=platform_return_lines(platforms),
        )

        saved = await self.snapshot_store.upsert(snapshot)

        logger.info(
            "Calculated returns for %s | corpus=%s | platform_value=%s | return_pct=%s | clients=%d",
            start.strftime("%Y-%m"),
            corpus.total_corpus,
            platforms.total_value,
            return_pct,
            len(snapshot.client_returns),
        )
        return saved

    async def previous_closing_balance(self, client_id: int, as_of: date) -> Decimal:
        """
        Client's closing balance from the snapshot of the month before as_of's month.

        Returns 0 when that snapshot or the client's line is missing.
        """
        snapshot = await self.snapshot_store.get_for_month(previous_month(as_of))
        if snapshot is None:
            return Decimal('0')
        entry = snapshot.client_return(client_id)
        return entry.closing_balance if entry is not None else Decimal('0')
