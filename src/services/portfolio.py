"""Portfolio service: manual and broker-linked portfolios.

Portfolio ids look like ``<userId>_<brokerId|manual>_<epochMillis>_<random9>``;
a user's portfolios are the ones whose id starts with ``<userId>_``.
"""

import random
import string
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from src.core.clock import now_iso
from src.core.errors import BrokerError, NotFoundError, ValidationError
from src.core.lexicon import KNOWN_SYMBOLS
from src.core.logger import logger
from src.core.news_utils import unique_symbols
from src.models.datatypes import BrokerAccount, Holding, Portfolio, Position
from src.providers.brokers import get_broker
from src.services.accounts import BrokerAccountService
from src.store.memory import InMemoryStore

MANUAL_BROKER_ID = "manual"
MANUAL_BROKER_NAME = "Manual Entry"

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_portfolio_id(user_id: str, broker_id: str) -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{user_id}_{broker_id}_{int(time.time() * 1000)}_{suffix}"


def compute_totals(holdings: Sequence[Holding], positions: Sequence[Position]) -> Tuple[float, float, float]:
    """Return ``(totalValue, totalPnl, totalPnlPercent)``.

    Value counts holdings only; P&L includes positions. The percentage is
    measured against the cost base ``value - pnl`` and is 0 when there is
    no value or the base is zero.
    """
    total_value = sum(h.quantity * h.last_price for h in holdings)
    total_pnl = sum(h.pnl for h in holdings) + sum(p.pnl for p in positions)
    cost_base = total_value - total_pnl
    if total_value > 0 and cost_base != 0:
        pnl_percent = total_pnl / cost_base * 100
    else:
        pnl_percent = 0.0
    return total_value, total_pnl, pnl_percent


def validate_stocks(stocks: Any) -> List[str]:
    """Check a client-supplied stock list and normalize it.

    Raises:
        ValidationError: Not a list, or any entry is not a non-empty string.
    """
    if not isinstance(stocks, list):
        raise ValidationError("Stocks array is required for manual portfolio")
    if any(not isinstance(s, str) or not s.strip() for s in stocks):
        raise ValidationError("All stock symbols must be valid non-empty strings")
    symbols = unique_symbols(stocks)
    unknown = [s for s in symbols if s not in KNOWN_SYMBOLS]
    if unknown:
        logger.warning(f"validate_stocks: symbols outside the known NSE list accepted: {unknown}")
    return symbols


class PortfolioService:
    """Portfolio CRUD plus broker sync.

    Args:
        accounts: Broker-account service sharing the account store.
        store: Portfolio store.
        settings: Effective settings, forwarded to broker variants.
    """

    def __init__(
        self,
        accounts: BrokerAccountService,
        store: Optional[InMemoryStore] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.accounts = accounts
        self.store: InMemoryStore = store if store is not None else InMemoryStore("portfolios")
        self.settings = settings or {}

    # ── queries ─────────────────────────────────────────────────────────────

    def get(self, portfolio_id: str, sync: bool = False) -> Portfolio:
        """Fetch one portfolio, optionally re-synced with its broker first.

        Raises:
            NotFoundError: No such portfolio.
        """
        portfolio = self.store.get(portfolio_id)
        if portfolio is None:
            raise NotFoundError("Portfolio not found")
        if sync and portfolio.is_linked:
            portfolio = self.sync(portfolio)
        return portfolio

    def list_for_user(self, user_id: str, sync: bool = False) -> List[Portfolio]:
        """All of a user's portfolios.

        A user with none gets one portfolio per active broker connection.
        With ``sync`` every linked portfolio is refreshed and saved.
        """
        prefix = f"{user_id}_"
        portfolios = self.store.list(lambda p: p.id.startswith(prefix))

        if not portfolios:
            for account in self.accounts.active_accounts(user_id):
                if any(p.broker_id == account.broker_id for p in portfolios):
                    continue
                try:
                    created = self.build_from_broker(account, user_id)
                except (BrokerError, ValidationError) as exc:
                    logger.error(
                        f"PortfolioService: could not create portfolio from "
                        f"{account.broker_id} for {user_id}: {exc}"
                    )
                    continue
                self.store.put(created.id, created)
                portfolios.append(created)

        if sync:
            portfolios = [self.sync(p) if p.is_linked else p for p in portfolios]
        return portfolios

    # ── mutations ───────────────────────────────────────────────────────────

    def create(
        self,
        user_id: str,
        name: Any,
        stocks: Any = None,
        broker_id: Optional[str] = None,
    ) -> Portfolio:
        """Create a manual portfolio, or a linked one when ``broker_id`` is given.

        Raises:
            ValidationError: Missing name, bad stock list, or no active broker account.
            BrokerError: The broker could not be read.
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Portfolio name is required")

        if broker_id:
            account = self.accounts.find_active(user_id, broker_id)
            if account is None:
                raise ValidationError("Broker account not found or not active")
            portfolio = replace(self.build_from_broker(account, user_id), name=name)
        else:
            symbols = validate_stocks(stocks)
            timestamp = now_iso()
            portfolio = Portfolio(
                id=new_portfolio_id(user_id, MANUAL_BROKER_ID),
                name=name,
                broker_id=MANUAL_BROKER_ID,
                broker_name=MANUAL_BROKER_NAME,
                stocks=symbols,
                is_linked=False,
                last_synced=timestamp,
                created_at=timestamp,
                updated_at=timestamp,
            )

        self.store.put(portfolio.id, portfolio)
        logger.info(f"PortfolioService: created {portfolio.id} ({len(portfolio.stocks)} stocks)")
        return portfolio

    def update(self, portfolio_id: str, name: Any = None, stocks: Any = None) -> Portfolio:
        """Rename and/or replace the stock list.

        Raises:
            ValidationError: Missing id or bad stock list.
            NotFoundError: No such portfolio.
        """
        if not portfolio_id:
            raise ValidationError("Portfolio ID is required")
        portfolio = self.store.get(portfolio_id)
        if portfolio is None:
            raise NotFoundError("Portfolio not found")

        if stocks is not None:
            portfolio.stocks = validate_stocks(stocks)
        if isinstance(name, str) and name.strip():
            portfolio.name = name
        portfolio.updated_at = now_iso()

        self.store.put(portfolio.id, portfolio)
        return portfolio

    def delete(self, portfolio_id: str) -> None:
        if not portfolio_id:
            raise ValidationError("Portfolio ID is required")
        if not self.store.delete(portfolio_id):
            raise NotFoundError("Portfolio not found")

    # ── broker sync ─────────────────────────────────────────────────────────

    def build_from_broker(self, account: BrokerAccount, user_id: str) -> Portfolio:
        """Build (but do not store) a linked portfolio from a broker account."""
        broker = get_broker(account.broker_id, self.settings)
        holdings = broker.get_holdings(account.access_token)
        positions = broker.get_positions(account.access_token)
        total_value, total_pnl, pnl_percent = compute_totals(holdings, positions)
        timestamp = now_iso()
        return Portfolio(
            id=new_portfolio_id(user_id, account.broker_id),
            name=f"{account.broker_name} Portfolio",
            broker_id=account.broker_id,
            broker_name=account.broker_name,
            stocks=unique_symbols([h.trading_symbol for h in holdings]),
            holdings=holdings,
            positions=positions,
            total_value=total_value,
            total_pnl=total_pnl,
            total_pnl_percent=pnl_percent,
            is_linked=True,
            last_synced=timestamp,
            created_at=timestamp,
            updated_at=timestamp,
        )

    def sync(self, portfolio: Portfolio) -> Portfolio:
        """Refresh a linked portfolio from its broker and save it.

        Without an active account, or when the broker call fails, the
        portfolio is returned unchanged.
        """
        account = self._account_for(portfolio)
        if account is None:
            logger.info(f"PortfolioService: {portfolio.id} has no active broker account — not synced")
            return portfolio

        try:
            broker = get_broker(account.broker_id, self.settings)
            holdings = broker.get_holdings(account.access_token)
            positions = broker.get_positions(account.access_token)
        except (BrokerError, ValidationError) as exc:
            logger.error(f"PortfolioService: sync failed for {portfolio.id}: {exc}")
            return portfolio

        total_value, total_pnl, pnl_percent = compute_totals(holdings, positions)
        timestamp = now_iso()
        synced = replace(
            portfolio,
            holdings=holdings,
            positions=positions,
            stocks=unique_symbols([h.trading_symbol for h in holdings]),
            total_value=total_value,
            total_pnl=total_pnl,
            total_pnl_percent=pnl_percent,
            last_synced=timestamp,
            updated_at=timestamp,
        )
        self.store.put(synced.id, synced)
        logger.info(f"PortfolioService: synced {synced.id} ({len(holdings)} holdings)")
        return synced

    def _account_for(self, portfolio: Portfolio) -> Optional[BrokerAccount]:
        matches = self.accounts.store.list(
            lambda a: a.is_active
            and a.broker_id == portfolio.broker_id
            and portfolio.id.startswith(f"{a.user_id}_")
        )
        return matches[0] if matches else None
