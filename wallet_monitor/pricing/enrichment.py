"""
USD enrichment helpers: attach derived USD values to native amounts.

Every helper is best-effort. A failing lookup leaves the USD field as None
and never aborts the caller.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from decimal import Decimal
from typing import Sequence

from wallet_monitor.blockchain.models import Token, Transaction
from wallet_monitor.monitor_logging import get_logger
from wallet_monitor.pricing.price_service import PriceService

logger = get_logger(__name__)


async def price_or_none(price_service: PriceService, symbol: str) -> Decimal | None:
    """USD price for symbol, or None when no real price is available."""
    try:
        return await price_service.lookup_price(symbol)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning("price_enrichment_failed", symbol=symbol, error=str(e))
        return None


async def value_in_usd(price_service: PriceService, symbol: str, amount: Decimal) -> Decimal | None:
    price = await price_or_none(price_service, symbol)
    return None if price is None else price * amount


async def enrich_tokens(
    tokens: Sequence[Token] | None,
    price_service: PriceService,
) -> list[Token] | None:
    """Price each token independently; a token whose lookup fails keeps the USD fields the backend reported."""
    if not tokens:
        return list(tokens) if tokens is not None else None

    prices = await asyncio.gather(*(price_or_none(price_service, t.symbol) for t in tokens))
    return [
        token if price is None else token.with_price(price)
        for token, price in zip(tokens, prices)
    ]


async def enrich_transactions(
    transactions: Sequence[Transaction],
    price_service: PriceService,
    currency: str,
) -> list[Transaction]:
    """Attach value_usd / fee_usd priced in the chain's native currency."""
    price = await price_or_none(price_service, currency)
    if price is None:
        return list(transactions)
    return [
        replace(tx, value_usd=tx.value * price, fee_usd=tx.fee * price)
        for tx in transactions
    ]
