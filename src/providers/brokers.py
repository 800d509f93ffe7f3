"""Broker integration variants.

Variants:
  1. ZerodhaBroker — Kite Connect REST API (holdings, positions, token exchange)
  2. GrowwBroker   — no public API; simulated login and a demo holding
  3. DemoBroker    — static holdings plus one F&O position

All variants implement :class:`BrokerProvider`; :func:`get_broker` picks one
by broker id.
"""

import hashlib
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlencode

import requests

from src.core.errors import BrokerError, ValidationError
from src.core.logger import logger
from src.models.datatypes import Holding, Position
from src.providers.base import BrokerProvider

DEFAULT_BASE_URL = "http://localhost:3000"

BROKER_NAMES: Dict[str, str] = {
    "zerodha": "Zerodha",
    "groww": "Groww",
    "upstox": "Upstox",
    "angel": "Angel One",
    "demo": "Demo Broker",
}


def broker_name(broker_id: str) -> str:
    """Display name for a broker id; unknown ids are returned unchanged."""
    return BROKER_NAMES.get(broker_id, broker_id)


# ── ZerodhaBroker ─────────────────────────────────────────────────────────────

class ZerodhaBroker(BrokerProvider):
    """Zerodha Kite Connect v3.

    Args:
        api_key: Kite Connect app key.
        api_secret: Kite Connect app secret (token exchange only).
        base_url: Kite REST base URL.
        public_base_url: Dashboard URL the login flow redirects back to.
        timeout: Per-request timeout in seconds.
    """

    broker_id = "zerodha"
    login_endpoint = "https://kite.zerodha.com/connect/login"

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        base_url: str = "https://api.kite.trade",
        public_base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self.public_base_url = public_base_url.rstrip("/")
        self.timeout = timeout

    def get_login_url(self, user_id: str) -> str:
        redirect = quote(f"{self.public_base_url}/api/broker/zerodha/callback", safe="")
        return (
            f"{self.login_endpoint}?api_key={self.api_key}&v=3"
            f"&redirect_url={redirect}&state={user_id}"
        )

    def generate_access_token(self, request_token: str) -> Dict[str, Any]:
        """Exchange a login ``request_token`` for a session.

        Raises:
            BrokerError: Missing credentials or a failed exchange.
        """
        if not self.api_key or not self.api_secret:
            raise BrokerError("Zerodha api_key/api_secret are not configured")
        payload = {
            "api_key": self.api_key,
            "request_token": request_token,
            "checksum": checksum(self.api_key + request_token + self.api_secret),
        }
        data = self._request("post", "/session/token", data=payload)
        return data.get("data") or {}

    def exchange_token(self, request_token: str) -> Optional[Dict[str, Any]]:
        """Kite session for ``request_token``; None when the app secret is not configured."""
        if not self.api_key or not self.api_secret:
            logger.info("ZerodhaBroker: api_key/api_secret not configured, request token kept unexchanged")
            return None
        return self.generate_access_token(request_token)

    def get_holdings(self, access_token: str) -> List[Holding]:
        rows = self._request("get", "/portfolio/holdings", access_token=access_token).get("data") or []
        holdings = [
            Holding(
                trading_symbol=row.get("tradingsymbol", ""),
                exchange=row.get("exchange", ""),
                isin=row.get("isin", ""),
                quantity=int(row.get("quantity") or 0),
                average_price=float(row.get("average_price") or 0),
                last_price=float(row.get("last_price") or 0),
                pnl=float(row.get("pnl") or 0),
                pnl_percent=float(row.get("pnl_percent") or 0),
                collateral_quantity=row.get("collateral_quantity"),
                collateral_type=row.get("collateral_type"),
            )
            for row in rows
        ]
        logger.info(f"ZerodhaBroker: {len(holdings)} holdings")
        return holdings

    def get_positions(self, access_token: str) -> List[Position]:
        data = self._request("get", "/portfolio/positions", access_token=access_token).get("data") or {}
        rows = list(data.get("net") or []) + list(data.get("day") or [])
        positions = [
            Position(
                trading_symbol=row.get("tradingsymbol", ""),
                exchange=row.get("exchange", ""),
                quantity=int(row.get("quantity") or 0),
                average_price=float(row.get("average_price") or 0),
                current_price=float(row.get("last_price") or 0),
                pnl=float(row.get("pnl") or 0),
                pnl_percent=float(row.get("pnl_percent") or 0),
                instrument_token=(
                    str(row["instrument_token"]) if row.get("instrument_token") is not None else None
                ),
            )
            for row in rows
        ]
        logger.info(f"ZerodhaBroker: {len(positions)} positions")
        return positions

    # ── internal ─────────────────────────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        access_token: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers = {"X-Kite-Version": "3"}
        if access_token:
            headers["Authorization"] = f"token {self.api_key}:{access_token}"
        url = f"{self.base_url}{path}"
        try:
            resp = requests.request(method, url, headers=headers, data=data, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error(f"ZerodhaBroker: INFRA_FAILURE {method.upper()} {path}: {exc}")
            raise BrokerError(f"Zerodha request failed: {exc}") from exc

        if resp.status_code != 200:
            logger.error(
                f"ZerodhaBroker: INFRA_FAILURE {method.upper()} {path} "
                f"HTTP {resp.status_code}: {resp.text[:200]}"
            )
            raise BrokerError(f"Zerodha returned HTTP {resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise BrokerError(f"Zerodha returned invalid JSON: {exc}") from exc


def checksum(data: str) -> str:
    """SHA-256 hex digest used by the Kite token exchange."""
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


# ── GrowwBroker ───────────────────────────────────────────────────────────────

class GrowwBroker(BrokerProvider):
    """Groww has no public trading API; login and holdings are simulated."""

    broker_id = "groww"

    def __init__(self, public_base_url: str = DEFAULT_BASE_URL) -> None:
        self.public_base_url = public_base_url.rstrip("/")

    def get_login_url(self, user_id: str) -> str:
        return f"{self.public_base_url}/broker/groww/login?{urlencode({'user': user_id})}"

    def get_holdings(self, access_token: str) -> List[Holding]:
        return [
            Holding("TCS", "NSE", "INE467B01029", 10, 3500.0, 3650.0, 1500.0, 4.28),
        ]

    def get_positions(self, access_token: str) -> List[Position]:
        return []


# ── DemoBroker ────────────────────────────────────────────────────────────────

class DemoBroker(BrokerProvider):
    """Static demo account used by the seeded ``demo`` broker connection."""

    broker_id = "demo"

    def __init__(self, public_base_url: str = DEFAULT_BASE_URL) -> None:
        self.public_base_url = public_base_url.rstrip("/")

    def get_login_url(self, user_id: str) -> str:
        query = urlencode({"user": user_id, "token": "demo_token"})
        return f"{self.public_base_url}/api/broker/demo/callback?{query}"

    def get_holdings(self, access_token: str) -> List[Holding]:
        return [
            Holding("TCS", "NSE", "INE467B01029", 25, 3420.50, 3650.75, 5756.25, 6.73),
            Holding("RELIANCE", "NSE", "INE002A01018", 15, 2850.25, 2920.80, 1058.25, 2.47),
            Holding("HDFCBANK", "NSE", "INE040A01034", 20, 1580.30, 1650.45, 1403.00, 4.44),
            Holding("INFY", "NSE", "INE009A01021", 30, 1420.75, 1485.20, 1933.50, 4.54),
        ]

    def get_positions(self, access_token: str) -> List[Position]:
        return [
            Position("NIFTY25JAN24900CE", "NFO", 50, 125.50, 142.30, 840.00, 13.38),
        ]


# ── Factory ───────────────────────────────────────────────────────────────────

SUPPORTED_BROKERS = ("zerodha", "groww", "demo")


def get_broker(broker_id: str, settings: Optional[Dict[str, Any]] = None) -> BrokerProvider:
    """Instantiate the variant for ``broker_id``.

    Args:
        broker_id: ``zerodha``, ``groww`` or ``demo``.
        settings: Effective settings; supplies ``app.base_url`` and ``brokers``.

    Raises:
        ValidationError: Unsupported broker id.
    """
    settings = settings or {}
    public_base_url = settings.get("app", {}).get("base_url", DEFAULT_BASE_URL)

    if broker_id == ZerodhaBroker.broker_id:
        cfg = settings.get("brokers", {}).get("zerodha", {})
        return ZerodhaBroker(
            api_key=cfg.get("api_key", ""),
            api_secret=cfg.get("api_secret", ""),
            base_url=cfg.get("base_url", "https://api.kite.trade"),
            public_base_url=public_base_url,
            timeout=float(settings.get("news", {}).get("timeout_seconds", 10)),
        )
    if broker_id == GrowwBroker.broker_id:
        return GrowwBroker(public_base_url=public_base_url)
    if broker_id == DemoBroker.broker_id:
        return DemoBroker(public_base_url=public_base_url)
    raise ValidationError(f"Unsupported broker: {broker_id}")
