from greedhunter.models.user import User
from greedhunter.models.activity_log import ActivityEntry, ActivityLog
from greedhunter.models.wallet import Wallet, WalletTransaction
from greedhunter.models.failed_event import FailedEvent

__all__ = [
    "User",
    "ActivityEntry",
    "ActivityLog",
    "Wallet",
    "WalletTransaction",
    "FailedEvent",
]
