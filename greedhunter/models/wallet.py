from datetime import datetime

import pymongo
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel

WALLET_ACTIVE = "active"
WALLET_FROZEN = "frozen"

CREDIT_TYPES = ("earn", "bonus", "refund")
TRANSACTION_TYPES = CREDIT_TYPES + ("spend",)
REF_MODELS = ("Quiz", "Event", "StoreItem", "Challenge", "Mission")


class WalletTransaction(BaseModel):
    tx_id: PydanticObjectId = Field(default_factory=PydanticObjectId)
    type: str  # earn, spend, bonus, refund
    amount: int
    balance_before: int
    resulting_balance: int
    description: str = Field(default="", max_length=200)
    reference: PydanticObjectId | None = None
    ref_model: str | None = None
    counterparty_id: PydanticObjectId | None = None
    transfer_id: PydanticObjectId | None = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class Wallet(Document):
    """Coin balance per user; every change goes through services.wallets."""
    user_id: PydanticObjectId
    balance: int = 0
    total_earned: int = 0
    total_spent: int = 0
    status: str = WALLET_ACTIVE  # "active" | "frozen"
    transactions: list[WalletTransaction] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "wallets"
        indexes = [
            IndexModel([("user_id", pymongo.ASCENDING)], unique=True),
            [("transactions.timestamp", pymongo.DESCENDING)],
        ]

    @property
    def is_frozen(self) -> bool:
        return self.status == WALLET_FROZEN
