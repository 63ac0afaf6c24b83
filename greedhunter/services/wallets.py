"""Coin wallet ledger: earn, spend, transfer, freeze.

Balance changes are compare-and-swap updates on the wallet document, so a
balance check and the write that depends on it cannot interleave with another
request. Each successful change is then recorded in the activity log (a second,
separate write).
"""

from collections import defaultdict
from datetime import datetime
from typing import Any

from beanie import PydanticObjectId
from beanie.odm.queries.update import UpdateResponse
from pymongo.errors import DuplicateKeyError

from greedhunter.core.config import get_settings
from greedhunter.core.exceptions import (
    AppError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidTransactionTypeError,
    InvalidWalletStateError,
    SelfTransferError,
    UserNotFoundError,
    WalletBusyError,
    WalletFrozenError,
    WalletNotFoundError,
)
from greedhunter.core.logging import get_logger
from greedhunter.core.pagination import Page, slice_page
from greedhunter.models.user import User
from greedhunter.models.wallet import (
    CREDIT_TYPES,
    REF_MODELS,
    TRANSACTION_TYPES,
    WALLET_ACTIVE,
    WALLET_FROZEN,
    Wallet,
    WalletTransaction,
)
from greedhunter.services import activity

log = get_logger(__name__)


def _check_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount)
    return amount


async def get_wallet(user_id: PydanticObjectId) -> Wallet:
    wallet = await Wallet.find_one(Wallet.user_id == user_id)
    if not wallet:
        raise WalletNotFoundError()
    return wallet


async def create_wallet(user_id: PydanticObjectId) -> Wallet:
    """Return the user's wallet, creating an empty active one if missing."""
    wallet = await Wallet.find_one(Wallet.user_id == user_id)
    if wallet:
        return wallet
    try:
        wallet = Wallet(user_id=user_id)
        await wallet.insert()
        log.info("wallet_created", user_id=str(user_id))
        return wallet
    except DuplicateKeyError:
        return await get_wallet(user_id)


async def _ensure_wallet(user_id: PydanticObjectId) -> Wallet:
    wallet = await Wallet.find_one(Wallet.user_id == user_id)
    if wallet:
        return wallet
    if not await User.get(user_id):
        raise UserNotFoundError()
    return await create_wallet(user_id)


async def _apply(
    user_id: PydanticObjectId,
    delta: int,
    tx_type: str,
    description: str,
    reference: PydanticObjectId | None = None,
    ref_model: str | None = None,
    counterparty_id: PydanticObjectId | None = None,
    transfer_id: PydanticObjectId | None = None,
) -> tuple[Wallet, WalletTransaction]:
    """Change the balance by delta and append the transaction, retrying on concurrent writes."""
    attempts = get_settings().wallet_cas_max_attempts
    for attempt in range(1, attempts + 1):
        wallet = await _ensure_wallet(user_id)
        if wallet.is_frozen:
            raise WalletFrozenError()
        balance_after = wallet.balance + delta
        if balance_after < 0:
            raise InsufficientFundsError(wallet.balance, -delta)

        tx = WalletTransaction(
            type=tx_type,
            amount=abs(delta),
            balance_before=wallet.balance,
            resulting_balance=balance_after,
            description=(description or "")[:200],
            reference=reference,
            ref_model=ref_model,
            counterparty_id=counterparty_id,
            transfer_id=transfer_id,
        )
        totals = {"total_earned": delta} if delta > 0 else {"total_spent": -delta}
        updated = await Wallet.find_one(
            {"_id": wallet.id, "status": WALLET_ACTIVE, "balance": wallet.balance}
        ).update(
            {
                "$set": {"balance": balance_after, "updated_at": datetime.utcnow()},
                "$inc": totals,
                "$push": {"transactions": tx.model_dump()},
            },
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if updated is not None:
            return updated, tx
        log.info("wallet_cas_retry", user_id=str(user_id), attempt=attempt)
    raise WalletBusyError()


def _tx_props(tx: WalletTransaction, actor_id: PydanticObjectId | None = None) -> dict[str, Any]:
    props = {
        "amount": tx.amount,
        "description": tx.description,
        "transaction_type": tx.type,
        "resulting_balance": tx.resulting_balance,
        "transaction_id": str(tx.tx_id),
    }
    if tx.counterparty_id is not None:
        props["counterparty_id"] = str(tx.counterparty_id)
    if tx.transfer_id is not None:
        props["transfer_id"] = str(tx.transfer_id)
    if actor_id is not None:
        props["actor_id"] = str(actor_id)
    return props


async def _log_transaction(
    user_id: PydanticObjectId,
    wallet: Wallet,
    tx: WalletTransaction,
    request: Any | None,
    actor_id: PydanticObjectId | None = None,
) -> None:
    await activity.log_activity(
        user_id,
        activity.WALLET_TRANSACTION,
        tx.description or f"{tx.type} {tx.amount} coins",
        request,
        "wallet",
        wallet.id,
        extra_props=_tx_props(tx, actor_id),
    )
    if actor_id is not None:
        event_type = activity.ADMIN_COINS_ADDED if tx.type in CREDIT_TYPES else activity.ADMIN_COINS_DEDUCTED
        await activity.log_activity(
            actor_id,
            event_type,
            f"{tx.type} {tx.amount} coins for user {user_id}",
            request,
            "wallet",
            wallet.id,
            extra_props={"amount": tx.amount, "transaction_type": tx.type, "target_user_id": str(user_id)},
        )


def _check_reference(ref_model: str | None) -> None:
    if ref_model is not None and ref_model not in REF_MODELS:
        raise InvalidTransactionTypeError(f"ref_model={ref_model}")


async def add_coins(
    user_id: PydanticObjectId,
    amount: int,
    description: str = "",
    tx_type: str = "earn",
    request: Any | None = None,
    reference: PydanticObjectId | None = None,
    ref_model: str | None = None,
    actor_id: PydanticObjectId | None = None,
) -> tuple[Wallet, WalletTransaction]:
    """Credit coins (earn, bonus or refund). Returns (wallet_after, transaction).

    actor_id names the admin making a manual adjustment; it is recorded on the
    owner's entry and an admin_coins_added entry goes to the admin's own log.
    """
    amount = _check_amount(amount)
    if tx_type not in CREDIT_TYPES:
        raise InvalidTransactionTypeError(tx_type)
    _check_reference(ref_model)
    wallet, tx = await _apply(user_id, amount, tx_type, description, reference, ref_model)
    log.info("coins_added", user_id=str(user_id), amount=amount, type=tx_type, balance=wallet.balance)
    await _log_transaction(user_id, wallet, tx, request, actor_id)
    return wallet, tx


async def deduct_coins(
    user_id: PydanticObjectId,
    amount: int,
    description: str = "",
    request: Any | None = None,
    reference: PydanticObjectId | None = None,
    ref_model: str | None = None,
    actor_id: PydanticObjectId | None = None,
) -> tuple[Wallet, WalletTransaction]:
    """Spend coins; rejected with InsufficientFundsError rather than clamped."""
    amount = _check_amount(amount)
    _check_reference(ref_model)
    wallet, tx = await _apply(user_id, -amount, "spend", description, reference, ref_model)
    log.info("coins_deducted", user_id=str(user_id), amount=amount, balance=wallet.balance)
    await _log_transaction(user_id, wallet, tx, request, actor_id)
    return wallet, tx


async def _revert(wallet_id: PydanticObjectId, tx: WalletTransaction) -> None:
    """Undo a debit whose matching credit was rejected."""
    await Wallet.find_one({"_id": wallet_id}).update(
        {
            "$inc": {"balance": tx.amount, "total_spent": -tx.amount},
            "$pull": {"transactions": {"tx_id": tx.tx_id}},
            "$set": {"updated_at": datetime.utcnow()},
        }
    )


async def transfer_coins(
    from_user_id: PydanticObjectId,
    to_user_id: PydanticObjectId,
    amount: int,
    description: str = "",
    request: Any | None = None,
) -> tuple[Wallet, Wallet]:
    """Move coins between two active wallets. Either both balances change or neither does."""
    amount = _check_amount(amount)
    if str(from_user_id) == str(to_user_id):
        raise SelfTransferError()
    recipient = await _ensure_wallet(to_user_id)
    if recipient.is_frozen:
        raise WalletFrozenError("Recipient wallet is frozen")

    transfer_id = PydanticObjectId()
    sender, debit = await _apply(
        from_user_id,
        -amount,
        "spend",
        description or f"Transfer to user {to_user_id}",
        counterparty_id=to_user_id,
        transfer_id=transfer_id,
    )
    try:
        recipient, credit = await _apply(
            to_user_id,
            amount,
            "earn",
            description or f"Transfer from user {from_user_id}",
            counterparty_id=from_user_id,
            transfer_id=transfer_id,
        )
    except Exception as e:
        await _revert(sender.id, debit)
        log.warning(
            "wallet_transfer_rolled_back",
            from_user_id=str(from_user_id),
            to_user_id=str(to_user_id),
            amount=amount,
            reason=e.code if isinstance(e, AppError) else type(e).__name__,
        )
        raise

    log.info("coins_transferred", from_user_id=str(from_user_id), to_user_id=str(to_user_id), amount=amount)
    await _log_transaction(from_user_id, sender, debit, request)
    await _log_transaction(to_user_id, recipient, credit, None)
    return sender, recipient


async def _set_status(
    user_id: PydanticObjectId,
    from_status: str,
    to_status: str,
    event_type: str,
    actor_id: PydanticObjectId | None,
    request: Any | None,
) -> Wallet:
    wallet = await _ensure_wallet(user_id)
    updated = await Wallet.find_one({"_id": wallet.id, "status": from_status}).update(
        {"$set": {"status": to_status, "updated_at": datetime.utcnow()}},
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    if updated is None:
        raise InvalidWalletStateError(f"Wallet is not {from_status}")
    log.info(event_type, user_id=str(user_id), actor_id=str(actor_id) if actor_id else None)
    props: dict[str, Any] = {"status": to_status}
    if actor_id is not None:
        props["actor_id"] = str(actor_id)
    await activity.log_activity(
        user_id,
        event_type,
        f"Wallet {to_status}",
        request,
        "wallet",
        updated.id,
        extra_props=props,
    )
    return updated


async def freeze_wallet(
    user_id: PydanticObjectId, actor_id: PydanticObjectId | None = None, request: Any | None = None
) -> Wallet:
    return await _set_status(user_id, WALLET_ACTIVE, WALLET_FROZEN, activity.WALLET_FROZEN, actor_id, request)


async def unfreeze_wallet(
    user_id: PydanticObjectId, actor_id: PydanticObjectId | None = None, request: Any | None = None
) -> Wallet:
    return await _set_status(user_id, WALLET_FROZEN, WALLET_ACTIVE, activity.WALLET_UNFROZEN, actor_id, request)


async def get_transaction_history(
    user_id: PydanticObjectId,
    page: int | None = None,
    limit: int | None = None,
    tx_type: str | None = None,
) -> list[WalletTransaction] | Page[WalletTransaction]:
    """Chronological transactions; with page/limit, a newest-first page instead."""
    if tx_type is not None and tx_type not in TRANSACTION_TYPES:
        raise InvalidTransactionTypeError(tx_type)
    wallet = await get_wallet(user_id)
    txs = [t for t in wallet.transactions if tx_type is None or t.type == tx_type]
    if page is None and limit is None:
        return txs
    newest = list(reversed(txs))
    return slice_page(newest, page or 1, limit or 10)


async def wallet_stats(user_id: PydanticObjectId) -> dict[str, Any]:
    wallet = await get_wallet(user_id)
    earned = spent = 0
    monthly: dict[str, dict[str, int]] = defaultdict(lambda: {"earned": 0, "spent": 0})
    for tx in wallet.transactions:
        month = tx.timestamp.strftime("%Y-%m")
        if tx.type in CREDIT_TYPES:
            earned += tx.amount
            monthly[month]["earned"] += tx.amount
        else:
            spent += tx.amount
            monthly[month]["spent"] += tx.amount
    return {
        "balance": wallet.balance,
        "total_earned": earned,
        "total_spent": spent,
        "net_earnings": earned - spent,
        "transaction_count": len(wallet.transactions),
        "monthly": dict(monthly),
        "status": wallet.status,
    }
