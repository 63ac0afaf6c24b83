from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from greedhunter.deps import get_current_user, parse_object_id, require_admin
from greedhunter.models.user import User
from greedhunter.models.wallet import Wallet, WalletTransaction
from greedhunter.services import wallets as wallet_service

router = APIRouter()


class TransferRequest(BaseModel):
    recipient_id: str
    amount: int
    description: str = ""


class AdminCoinsRequest(BaseModel):
    user_id: str
    amount: int
    type: str = "earn"
    description: str = ""


class AdminWalletRequest(BaseModel):
    user_id: str


def _wallet_out(wallet: Wallet) -> dict:
    return {
        "balance": wallet.balance,
        "total_earned": wallet.total_earned,
        "total_spent": wallet.total_spent,
        "status": wallet.status,
        "is_frozen": wallet.is_frozen,
        "transaction_count": len(wallet.transactions),
    }


def _tx_out(tx: WalletTransaction) -> dict:
    return {
        "id": str(tx.tx_id),
        "type": tx.type,
        "amount": tx.amount,
        "balance_before": tx.balance_before,
        "resulting_balance": tx.resulting_balance,
        "description": tx.description,
        "reference": str(tx.reference) if tx.reference else None,
        "ref_model": tx.ref_model,
        "counterparty_id": str(tx.counterparty_id) if tx.counterparty_id else None,
        "transfer_id": str(tx.transfer_id) if tx.transfer_id else None,
        "timestamp": tx.timestamp.isoformat(),
    }


@router.get("")
async def wallet_info(user: User = Depends(get_current_user)):
    wallet = await wallet_service.get_wallet(user.id)
    return {"wallet": _wallet_out(wallet)}


@router.get("/transactions")
async def wallet_transactions(
    user: User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    type: str | None = Query(None),
):
    """Transactions for current user (newest first)."""
    result = await wallet_service.get_transaction_history(user.id, page=page, limit=limit, tx_type=type)
    return {"transactions": [_tx_out(t) for t in result.items], "pagination": result.pagination()}


@router.get("/stats")
async def wallet_stats(user: User = Depends(get_current_user)):
    return {"stats": await wallet_service.wallet_stats(user.id)}


@router.post("/transfer")
async def wallet_transfer(body: TransferRequest, request: Request, user: User = Depends(get_current_user)):
    recipient_id = parse_object_id(body.recipient_id, "recipient_id")
    sender, _ = await wallet_service.transfer_coins(user.id, recipient_id, body.amount, body.description, request)
    return {"message": f"{body.amount} coins transferred successfully", "wallet": _wallet_out(sender)}


@router.post("/admin/add-coins")
async def admin_add_coins(body: AdminCoinsRequest, request: Request, admin: User = Depends(require_admin)):
    """Admin: credit coins to a user's wallet."""
    user_id = parse_object_id(body.user_id, "user_id")
    wallet, tx = await wallet_service.add_coins(
        user_id, body.amount, body.description or f"Admin added {body.type}", body.type, request, actor_id=admin.id
    )
    return {"wallet": _wallet_out(wallet), "transaction": _tx_out(tx)}


@router.post("/admin/deduct-coins")
async def admin_deduct_coins(body: AdminCoinsRequest, request: Request, admin: User = Depends(require_admin)):
    """Admin: debit coins from a user's wallet."""
    user_id = parse_object_id(body.user_id, "user_id")
    wallet, tx = await wallet_service.deduct_coins(
        user_id, body.amount, body.description or "Admin deducted coins", request, actor_id=admin.id
    )
    return {"wallet": _wallet_out(wallet), "transaction": _tx_out(tx)}


@router.post("/admin/freeze")
async def admin_freeze(body: AdminWalletRequest, request: Request, admin: User = Depends(require_admin)):
    wallet = await wallet_service.freeze_wallet(parse_object_id(body.user_id, "user_id"), admin.id, request)
    return {"wallet": _wallet_out(wallet)}


@router.post("/admin/unfreeze")
async def admin_unfreeze(body: AdminWalletRequest, request: Request, admin: User = Depends(require_admin)):
    wallet = await wallet_service.unfreeze_wallet(parse_object_id(body.user_id, "user_id"), admin.id, request)
    return {"wallet": _wallet_out(wallet)}
