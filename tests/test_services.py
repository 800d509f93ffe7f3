# tests/test_services.py
from datetime import datetime

import pytest

from src.core.clock import now_iso
from src.core.errors import BrokerError, NotFoundError, ValidationError
from src.models.datatypes import Holding, Position
from src.services.accounts import DEMO_ACCOUNT_ID, BrokerAccountService
from src.services.portfolio import PortfolioService, compute_totals, validate_stocks
from src.store.memory import InMemoryStore

USER = "user123"


@pytest.fixture
def accounts(settings):
    return BrokerAccountService(InMemoryStore("accounts"), settings)


@pytest.fixture
def portfolios(accounts, settings):
    return PortfolioService(accounts, InMemoryStore("portfolios"), settings)


# ── store ─────────────────────────────────────────────────────────────────────

def test_store_returns_copies():
    store = InMemoryStore("things")
    value = {"stocks": ["TCS"]}
    store.put("a", value)
    value["stocks"].append("INFY")

    fetched = store.get("a")
    fetched["stocks"].append("ITC")

    assert store.get("a") == {"stocks": ["TCS"]}
    assert "a" in store and len(store) == 1
    assert store.delete("a") is True
    assert store.delete("a") is False
    assert store.get("a") is None


# ── totals / validation ───────────────────────────────────────────────────────

def test_compute_totals_counts_positions_in_pnl_only():
    holdings = [Holding("TCS", "NSE", "X", 10, 100.0, 110.0, 100.0, 10.0)]
    positions = [Position("NIFTYFUT", "NFO", 50, 10.0, 12.0, 100.0, 20.0)]

    value, pnl, percent = compute_totals(holdings, positions)

    assert value == pytest.approx(1100.0)
    assert pnl == pytest.approx(200.0)
    assert percent == pytest.approx(200.0 / 900.0 * 100)


def test_compute_totals_zero_base_gives_zero_percent():
    assert compute_totals([], []) == (0, 0, 0.0)
    holdings = [Holding("TCS", "NSE", "X", 1, 0.0, 100.0, 100.0, 0.0)]
    assert compute_totals(holdings, [])[2] == 0.0


def test_validate_stocks_normalizes_and_rejects_bad_entries():
    assert validate_stocks([" tcs", "INFY", "TCS", "ZZZNEW"]) == ["TCS", "INFY", "ZZZNEW"]
    with pytest.raises(ValidationError, match="Stocks array is required"):
        validate_stocks("TCS,INFY")
    with pytest.raises(ValidationError, match="non-empty strings"):
        validate_stocks(["TCS", "  "])
    with pytest.raises(ValidationError):
        validate_stocks(["TCS", 42])


# ── accounts ──────────────────────────────────────────────────────────────────

def test_demo_account_is_seeded_for_default_user(accounts):
    [account] = accounts.list_accounts(USER)
    assert account.id == DEMO_ACCOUNT_ID
    assert account.broker_id == "demo"
    assert account.is_active


def test_demo_seed_can_be_disabled(settings):
    settings["app"]["seed_demo_account"] = False
    assert BrokerAccountService(InMemoryStore("accounts"), settings).list_accounts(USER) == []


def test_connect_creates_then_refreshes(accounts):
    created = accounts.connect("alice", "groww", request_token="rt-1")
    assert created.access_token == "groww_demo_token"
    assert created.broker_name == "Groww"

    refreshed = accounts.connect("alice", "groww", access_token="real-token")
    assert refreshed.id == created.id
    assert refreshed.access_token == "real-token"
    assert len(accounts.list_accounts("alice")) == 1


def test_connect_requires_ids_and_a_token(accounts):
    with pytest.raises(ValidationError):
        accounts.connect("", "groww", access_token="t")
    with pytest.raises(ValidationError):
        accounts.connect("alice", "groww")


def test_disconnect(accounts):
    account = accounts.connect("alice", "groww", access_token="t")
    accounts.disconnect(account.id)
    assert accounts.list_accounts("alice") == []
    with pytest.raises(NotFoundError, match="Broker account not found"):
        accounts.disconnect(account.id)
    with pytest.raises(ValidationError):
        accounts.disconnect("")


def test_login_urls(accounts):
    assert accounts.login_url("alice", "groww") == "http://localhost:3000/broker/groww/login?user=alice"
    demo = accounts.login_url("alice", "demo")
    assert demo.startswith("http://localhost:3000/api/broker/demo/callback?")
    assert "token=demo_token" in demo
    zerodha = accounts.login_url("alice", "zerodha")
    assert zerodha.startswith("https://kite.zerodha.com/connect/login?")
    assert "state=alice" in zerodha
    with pytest.raises(ValidationError, match="Unsupported broker"):
        accounts.login_url("alice", "robinhood")


# ── portfolios ────────────────────────────────────────────────────────────────

def test_manual_portfolio_crud(portfolios):
    created = portfolios.create("alice", "Long term", ["tcs", "INFY", "TCS"])
    assert created.id.startswith("alice_manual_")
    assert created.stocks == ["TCS", "INFY"]
    assert created.broker_name == "Manual Entry"
    assert not created.is_linked

    assert portfolios.get(created.id) == created
    assert [p.id for p in portfolios.list_for_user("alice")] == [created.id]

    updated = portfolios.update(created.id, name="Core", stocks=["ITC"])
    assert (updated.name, updated.stocks) == ("Core", ["ITC"])

    portfolios.delete(created.id)
    with pytest.raises(NotFoundError, match="Portfolio not found"):
        portfolios.get(created.id)
    with pytest.raises(NotFoundError):
        portfolios.delete(created.id)


def test_create_validation(portfolios):
    with pytest.raises(ValidationError, match="Portfolio name is required"):
        portfolios.create("alice", "  ", ["TCS"])
    with pytest.raises(ValidationError, match="Stocks array is required"):
        portfolios.create("alice", "Mine")
    with pytest.raises(ValidationError, match="Broker account not found or not active"):
        portfolios.create("alice", "Linked", broker_id="zerodha")


def test_update_unknown_portfolio(portfolios):
    with pytest.raises(NotFoundError):
        portfolios.update("alice_manual_1_abc", name="x")
    with pytest.raises(ValidationError):
        portfolios.update("", name="x")


def test_list_auto_creates_from_demo_broker(portfolios):
    [portfolio] = portfolios.list_for_user(USER)

    assert portfolio.is_linked
    assert portfolio.broker_id == "demo"
    assert portfolio.stocks == ["TCS", "RELIANCE", "HDFCBANK", "INFY"]
    assert len(portfolio.positions) == 1
    assert portfolio.total_value == pytest.approx(212645.75)
    assert portfolio.total_pnl == pytest.approx(10991.0)
    assert portfolio.total_pnl_percent == pytest.approx(10991.0 / (212645.75 - 10991.0) * 100)

    # created once, then read back
    assert [p.id for p in portfolios.list_for_user(USER)] == [portfolio.id]


def test_linked_portfolio_create_uses_given_name(portfolios, accounts):
    accounts.connect("bob", "groww", access_token="t")
    portfolio = portfolios.create("bob", "My Groww", broker_id="groww")
    assert portfolio.name == "My Groww"
    assert portfolio.stocks == ["TCS"]
    assert portfolio.total_pnl == pytest.approx(1500.0)


def test_sync_persists_fresh_broker_data(portfolios):
    [portfolio] = portfolios.list_for_user(USER)
    portfolios.update(portfolio.id, stocks=["ITC"])

    synced = portfolios.get(portfolio.id, sync=True)

    assert synced.stocks == ["TCS", "RELIANCE", "HDFCBANK", "INFY"]
    assert portfolios.get(portfolio.id).stocks == synced.stocks


def test_sync_without_account_leaves_portfolio_unchanged(portfolios, accounts):
    [portfolio] = portfolios.list_for_user(USER)
    accounts.disconnect(DEMO_ACCOUNT_ID)
    portfolios.update(portfolio.id, stocks=["ITC"])

    assert portfolios.get(portfolio.id, sync=True).stocks == ["ITC"]


def test_sync_broker_failure_leaves_portfolio_unchanged(portfolios, monkeypatch):
    [portfolio] = portfolios.list_for_user(USER)

    def broken(self, access_token):
        raise BrokerError("Demo broker offline")

    monkeypatch.setattr("src.providers.brokers.DemoBroker.get_holdings", broken)
    assert portfolios.sync(portfolio) == portfolio


def test_now_iso_is_utc_to_the_second():
    stamp = now_iso()
    assert stamp.endswith("+00:00")
    assert "." not in stamp
    assert datetime.fromisoformat(stamp).tzinfo is not None
