"""
System container and FastAPI dependencies
"""

from typing import Optional

from ..storage import InMemoryStorage, SQLiteStorage
from ..contracts import ContractManager
from ..reporting import ReportingEngine
from ..collections import CollectionsManager
from ..notifications import MessageTransport, NotificationEngine
from ..messages import BillingMessageConfig, PixSettings
from ..currency import Currency
from ..config import get_config, sqlite_path


class BillingSystem:
    """Billing engine with all components initialized"""

    def __init__(
        self,
        use_sqlite: bool = True,
        db_path: Optional[str] = None,
        transport: Optional[MessageTransport] = None,
        message_config: Optional[BillingMessageConfig] = None,
        pix: Optional[PixSettings] = None,
        signature_name: Optional[str] = None
    ):
        config = get_config()

        if use_sqlite:
            self.storage = SQLiteStorage(db_path or sqlite_path(config.database_url))
        else:
            self.storage = InMemoryStorage()

        self.contract_manager = ContractManager(self.storage, config.satisfied_tolerance)
        self.reporting_engine = ReportingEngine(self.contract_manager, Currency[config.default_currency])
        self.collections_manager = CollectionsManager(self.contract_manager, list(config.alert_days))
        self.notification_engine = NotificationEngine(
            self.storage,
            self.contract_manager,
            self.collections_manager,
            transport=transport,
            message_config=message_config,
            pix=pix,
            signature_name=signature_name,
            early_reminder_days=config.early_reminder_days
        )

    def close(self) -> None:
        self.storage.close()


_billing_system: Optional[BillingSystem] = None


def get_billing_system() -> BillingSystem:
    """Dependency returning the process-wide billing system, created on first use"""
    global _billing_system
    if _billing_system is None:
        _billing_system = BillingSystem(use_sqlite=get_config().use_sqlite)
    return _billing_system
