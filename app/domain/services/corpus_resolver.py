"""
CORPUS RESOLVER

Computes total pooled capital and each client's capital share as of a date.

RULES:
- Only ACTIVE ledger entries dated on or before the cutoff count
- Deposits add, withdrawals subtract
- Share percentages rounded to 2 dp, defined as 0 on a zero corpus
- Unknown client references are skipped, never fatal
- Legacy entries with a non-positive amount are skipped, never fatal
"""

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Protocol

from app.domain.models import ClientShare, CorpusData, Transaction

logger = logging.getLogger(__name__)

PERCENT_QUANT = Decimal('0.01')
HUNDRED = Decimal('100')


class TransactionStore(Protocol):
    """Protocol for ledger data access - ASYNC"""

    async def list_active_until(self, as_of: date) -> List[Transaction]:
        """Active transactions with transaction_date <= as_of"""
        ...


class ClientDirectory(Protocol):
    """Protocol for client lookups - ASYNC"""

    async def get_names(self, client_ids: Iterable[int]) -> Dict[int, str]:
        """Names of the known clients among `client_ids`"""
        ...


def share_percentage(part: Decimal, total: Decimal) -> Decimal:
    """part / total * 100 rounded to 2 dp; 0 when total is 0"""
    if total == 0:
        return Decimal('0.00')
    return (part / total * HUNDRED).quantize(PERCENT_QUANT, rounding=ROUND_HALF_UP)


def build_corpus(
    as_of: date,
    transactions: Iterable[Transaction],
    client_names: Dict[int, str],
) -> CorpusData:
    """
    Fold ledger entries into per-client totals.

    Pure: callers fetch the entries and the client directory once, then
    compute, so a single calculation never observes a half-written ledger.
    """
    totals: Dict[int, Decimal] = defaultdict(lambda: Decimal('0'))
    skipped = 0

    for txn in transactions:
        if not txn.is_active or txn.transaction_date > as_of:
            continue
        if txn.amount <= 0:
            skipped += 1
            logger.warning(
                "Skipping transaction %s: non-positive amount %s",
                txn.id,
                txn.amount,
            )
            continue
        if txn.client_id not in client_names:
            skipped += 1
            logger.warning(
                "Skipping transaction %s: unknown client %s",
                txn.id,
                txn.client_id,
            )
            continue
        totals[txn.client_id] += txn.signed_amount

    total_corpus = sum(totals.values(), Decimal('0'))

    shares = [
        ClientShare(
            client_id=client_id,
            client_name=client_names[client_id],
            total_investment=amount,
            share_percentage=share_percentage(amount, total_corpus),
        )
        for client_id, amount in sorted(totals.items())
    ]

    if skipped:
        logger.warning("Corpus as of %s ignored %d unusable transaction(s)", as_of, skipped)

    return CorpusData(as_of=as_of, total_corpus=total_corpus, client_shares=shares)


class CorpusResolver:
    """Resolves pooled capital from the ledger at an arbitrary date"""

    def __init__(self, transaction_store: TransactionStore, client_directory: ClientDirectory):
        self.transaction_store = transaction_store
        self.client_directory = client_directory

    async def resolve_corpus(self, as_of: date) -> CorpusData:
        """
        Total corpus and client shares as of `as_of` (inclusive).

        Args:
            as_of: Cutoff date

        Returns:
            CorpusData; total_corpus is 0 and shares empty for an empty ledger
        """
        transactions = await self.transaction_store.list_active_until(as_of)
        if not transactions:
            return CorpusData(as_of=as_of, total_corpus=Decimal('0'), client_shares=[])

        client_ids = {txn.client_id for txn in transactions}
        client_names = await self.client_directory.get_names(client_ids)

        return build_corpus(as_of, transactions, client_names)
