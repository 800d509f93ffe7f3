"""Framework-free request handlers for the dashboard API.

Each handler takes already-decoded query parameters or a JSON body and
returns ``(status_code, payload)``. Payloads use the envelope
``{"success": bool, "data" | "error": ..., "timestamp"?: iso}``; any web
framework can serialize them as-is.

Status codes follow the error hierarchy: ValidationError → 400,
NotFoundError → 404, BrokerError → 502, anything unexpected → 500.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

from src.core.clock import now_iso
from src.core.errors import DashboardError, ValidationError
from src.core.logger import logger
from src.models.datatypes import NewsItem
from src.pipeline.engine import ALL_SOURCES, DashboardEngine

Response = Tuple[int, Dict[str, Any]]


def ok(data: Any = None, **extra: Any) -> Response:
    payload: Dict[str, Any] = {"success": True}
    if data is not None:
        payload["data"] = data
    payload.update(extra)
    return 200, payload


def fail(status: int, error: str) -> Response:
    return status, {"success": False, "error": error}


def _guarded(action: str, fn: Callable[[], Response]) -> Response:
    """Run ``fn`` and map dashboard errors onto status codes."""
    try:
        return fn()
    except DashboardError as exc:
        logger.warning(f"{action}: {exc}")
        return fail(exc.status_code, str(exc))
    except Exception as exc:
        logger.error(f"{action}: unexpected failure: {exc}", exc_info=True)
        return fail(500, f"Failed to {action}")


def decode_news(raw: Any) -> List[NewsItem]:
    """Decode a request's news array; a missing array decodes to [].

    Raises:
        ValidationError: Not a list, or an entry without a title.
    """
    if raw is not None and not isinstance(raw, list):
        raise ValidationError("news must be a list")
    try:
        return [NewsItem.from_dict(entry) for entry in raw or [] if isinstance(entry, dict)]
    except ValueError as exc:
        raise ValidationError(f"Invalid news item: {exc}") from exc


def parse_news(raw: Any) -> List[NewsItem]:
    """Decode a news array that must not be empty."""
    news = decode_news(raw)
    if not news:
        raise ValidationError("No news data provided")
    return news


def _portfolio_symbols(raw: Any) -> List[str]:
    if raw is None:
        return []
    if not isinstance(raw, list) or any(not isinstance(s, str) for s in raw):
        raise ValidationError("portfolio must be a list of symbols")
    return raw


# ── News & analysis ───────────────────────────────────────────────────────────

def handle_news(engine: DashboardEngine, params: Optional[Mapping[str, Any]] = None) -> Response:
    """GET /api/news?source=all|<name>"""
    params = params or {}

    def run() -> Response:
        items = engine.fetch_news(params.get("source") or ALL_SOURCES)
        return ok([item.to_dict() for item in items], timestamp=now_iso())

    return _guarded("fetch news", run)


def handle_analyze(engine: DashboardEngine, body: Optional[Mapping[str, Any]]) -> Response:
    """POST /api/analyze with ``{news: [...], portfolio?: [...]}``."""
    body = body or {}

    def run() -> Response:
        news = parse_news(body.get("news"))
        verdict = engine.analyze(news, _portfolio_symbols(body.get("portfolio")))
        return ok(verdict.to_dict(), timestamp=now_iso())

    return _guarded("analyze news", run)


def handle_stock_analysis(engine: DashboardEngine, body: Optional[Mapping[str, Any]]) -> Response:
    """POST /api/stock-analysis with ``{portfolioStocks: [...], news: [...]}``.

    An empty news list is allowed here; every stock then scores as uncovered.
    """
    body = body or {}

    def run() -> Response:
        news = decode_news(body.get("news"))
        stocks = _portfolio_symbols(body.get("portfolioStocks"))
        results = engine.analyze_stocks(stocks, news)
        return ok([r.to_dict() for r in results], timestamp=now_iso())

    return _guarded("analyze stocks", run)


# ── Portfolios ────────────────────────────────────────────────────────────────

def _default_user(engine: DashboardEngine, value: Any) -> str:
    return str(value) if value else engine.accounts.default_user_id


def handle_portfolio_get(engine: DashboardEngine, params: Optional[Mapping[str, Any]] = None) -> Response:
    """GET /api/portfolio?id=&userId=&sync=true"""
    params = params or {}
    sync = str(params.get("sync", "")).lower() == "true"

    def run() -> Response:
        portfolio_id = params.get("id")
        if portfolio_id:
            return ok(engine.portfolios.get(portfolio_id, sync=sync).to_dict())
        user_id = _default_user(engine, params.get("userId"))
        portfolios = engine.portfolios.list_for_user(user_id, sync=sync)
        return ok([p.to_dict() for p in portfolios])

    return _guarded("fetch portfolios", run)


def handle_portfolio_post(engine: DashboardEngine, body: Optional[Mapping[str, Any]]) -> Response:
    """POST /api/portfolio with ``{name, stocks?, userId?, brokerId?}``."""
    body = body or {}

    def run() -> Response:
        portfolio = engine.portfolios.create(
            user_id=_default_user(engine, body.get("userId")),
            name=body.get("name"),
            stocks=body.get("stocks"),
            broker_id=body.get("brokerId"),
        )
        return ok(portfolio.to_dict())

    return _guarded("create portfolio", run)


def handle_portfolio_put(engine: DashboardEngine, body: Optional[Mapping[str, Any]]) -> Response:
    """PUT /api/portfolio with ``{id, name?, stocks?}``."""
    body = body or {}

    def run() -> Response:
        portfolio = engine.portfolios.update(body.get("id"), name=body.get("name"), stocks=body.get("stocks"))
        return ok(portfolio.to_dict())

    return _guarded("update portfolio", run)


def handle_portfolio_delete(engine: DashboardEngine, params: Optional[Mapping[str, Any]] = None) -> Response:
    """DELETE /api/portfolio?id="""
    params = params or {}

    def run() -> Response:
        engine.portfolios.delete(params.get("id"))
        return ok(message="Portfolio deleted successfully")

    return _guarded("delete portfolio", run)


# ── Broker accounts ───────────────────────────────────────────────────────────

def handle_broker_get(engine: DashboardEngine, params: Optional[Mapping[str, Any]] = None) -> Response:
    """GET /api/broker?userId="""
    params = params or {}

    def run() -> Response:
        user_id = _default_user(engine, params.get("userId"))
        return ok([a.to_dict() for a in engine.accounts.list_accounts(user_id)])

    return _guarded("fetch broker accounts", run)


def handle_broker_post(engine: DashboardEngine, body: Optional[Mapping[str, Any]]) -> Response:
    """POST /api/broker with ``action`` ``getLoginUrl`` or ``connect``."""
    body = body or {}

    def run() -> Response:
        user_id = body.get("userId")
        broker_id = body.get("brokerId")
        if not user_id or not broker_id:
            raise ValidationError("userId and brokerId are required")

        action = body.get("action")
        if action == "getLoginUrl":
            return ok(loginUrl=engine.accounts.login_url(user_id, broker_id))
        if action == "connect":
            existed = any(a.broker_id == broker_id for a in engine.accounts.list_accounts(user_id))
            account = engine.accounts.connect(
                user_id,
                broker_id,
                access_token=body.get("accessToken"),
                request_token=body.get("requestToken"),
            )
            message = (
                "Broker account updated successfully" if existed
                else "Broker account connected successfully"
            )
            return ok(account.to_dict(), message=message)
        raise ValidationError("Invalid action")

    return _guarded("handle broker request", run)


def handle_broker_delete(engine: DashboardEngine, params: Optional[Mapping[str, Any]] = None) -> Response:
    """DELETE /api/broker?accountId="""
    params = params or {}

    def run() -> Response:
        engine.accounts.disconnect(params.get("accountId"))
        return ok(message="Broker account disconnected successfully")

    return _guarded("disconnect broker account", run)


def handle_broker_callback(engine: DashboardEngine, params: Optional[Mapping[str, Any]] = None) -> Response:
    """GET /api/broker/callback — answers with a 302 back to the dashboard.

    Success (``status=success``, a ``request_token`` or the demo broker)
    redirects with ``broker_connected``; anything else with ``broker_error``.
    """
    params = params or {}
    base_url = engine.settings.get("app", {}).get("base_url", "http://localhost:3000").rstrip("/")
    broker = params.get("broker") or "demo"
    request_token = params.get("request_token")

    if params.get("status") == "success" or request_token or broker == "demo":
        query = urlencode({
            "broker_connected": broker,
            "user": params.get("state") or "",
            "token": request_token or "demo_token",
        })
    else:
        logger.warning(f"handle_broker_callback: login failed for broker {broker}")
        query = urlencode({"broker_error": "true", "broker": broker})
    return 302, {"location": f"{base_url}?{query}"}
