"""Broker-account service: connected broker logins per user."""

import time
from typing import Any, Dict, List, Optional

from src.core.clock import now_iso
from src.core.errors import NotFoundError, ValidationError
from src.core.logger import logger
from src.models.datatypes import BrokerAccount
from src.providers.brokers import SUPPORTED_BROKERS, broker_name, get_broker
from src.store.memory import InMemoryStore

DEMO_ACCOUNT_ID = "1"
DEMO_ACCESS_TOKEN = "demo_access_token"


class BrokerAccountService:
    """CRUD, login URLs and connect/disconnect for broker accounts.

    Args:
        store: Shared account store (also read by the portfolio service).
        settings: Effective settings; ``app.seed_demo_account`` adds the demo
            connection for the default user.
    """

    def __init__(self, store: Optional[InMemoryStore] = None, settings: Optional[Dict[str, Any]] = None) -> None:
        self.store: InMemoryStore = store if store is not None else InMemoryStore("broker_accounts")
        self.settings = settings or {}
        app_cfg = self.settings.get("app", {})
        self.default_user_id = app_cfg.get("default_user_id", "user123")
        if app_cfg.get("seed_demo_account", True) and DEMO_ACCOUNT_ID not in self.store:
            self.store.put(DEMO_ACCOUNT_ID, BrokerAccount(
                id=DEMO_ACCOUNT_ID,
                user_id=self.default_user_id,
                broker_id="demo",
                broker_name=broker_name("demo"),
                access_token=DEMO_ACCESS_TOKEN,
                is_active=True,
                last_synced=now_iso(),
            ))

    def list_accounts(self, user_id: str) -> List[BrokerAccount]:
        return self.store.list(lambda account: account.user_id == user_id)

    def find_active(self, user_id: str, broker_id: str) -> Optional[BrokerAccount]:
        """The active account for ``(user_id, broker_id)``, if any."""
        matches = self.store.list(
            lambda a: a.user_id == user_id and a.broker_id == broker_id and a.is_active
        )
        return matches[0] if matches else None

    def active_accounts(self, user_id: str) -> List[BrokerAccount]:
        return self.store.list(lambda a: a.user_id == user_id and a.is_active)

    def login_url(self, user_id: str, broker_id: str) -> str:
        """Start a broker login flow.

        Raises:
            ValidationError: Missing ids or an unsupported broker.
        """
        if not user_id or not broker_id:
            raise ValidationError("userId and brokerId are required")
        return get_broker(broker_id, self.settings).get_login_url(user_id)

    def connect(
        self,
        user_id: str,
        broker_id: str,
        access_token: Optional[str] = None,
        request_token: Optional[str] = None,
    ) -> BrokerAccount:
        """Create or refresh the account for ``(user_id, broker_id)``.

        Args:
            user_id: Owning user.
            broker_id: Broker id (``zerodha``, ``groww``, ``demo`` ...).
            access_token: Token from a completed login, if known.
            request_token: Login request token. Without an access token it is
                exchanged with the broker when the broker supports that
                (Zerodha with an app secret); otherwise a demo token is stored.

        Raises:
            ValidationError: Missing ids or neither token supplied.
            BrokerError: The broker rejected the token exchange.
        """
        if not user_id or not broker_id:
            raise ValidationError("userId and brokerId are required")
        if not access_token and not request_token:
            raise ValidationError("accessToken or requestToken is required")

        refresh_token: Optional[str] = None
        if not access_token and broker_id in SUPPORTED_BROKERS:
            session = get_broker(broker_id, self.settings).exchange_token(request_token)
            if session:
                access_token = session.get("access_token") or None
                refresh_token = session.get("refresh_token") or None
                logger.info(f"BrokerAccountService: exchanged {broker_id} request token for {user_id}")

        existing = self.store.list(lambda a: a.user_id == user_id and a.broker_id == broker_id)
        if existing:
            account = existing[0]
            account.access_token = access_token or account.access_token
            account.refresh_token = refresh_token or account.refresh_token
            account.is_active = True
            account.last_synced = now_iso()
            logger.info(f"BrokerAccountService: refreshed {broker_id} account {account.id} for {user_id}")
        else:
            account = BrokerAccount(
                id=str(int(time.time() * 1000)),
                user_id=user_id,
                broker_id=broker_id,
                broker_name=broker_name(broker_id),
                access_token=access_token or f"{broker_id}_demo_token",
                is_active=True,
                last_synced=now_iso(),
                refresh_token=refresh_token,
            )
            while account.id in self.store:
                account.id = str(int(account.id) + 1)
            logger.info(f"BrokerAccountService: connected {broker_id} account {account.id} for {user_id}")

        self.store.put(account.id, account)
        return account

    def disconnect(self, account_id: str) -> None:
        """Remove an account.

        Raises:
            ValidationError: Missing id.
            NotFoundError: No such account.
        """
        if not account_id:
            raise ValidationError("accountId is required")
        if not self.store.delete(account_id):
            raise NotFoundError("Broker account not found")
        logger.info(f"BrokerAccountService: disconnected account {account_id}")
