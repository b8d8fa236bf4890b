"""ff_wallet REST API: balance, credit/debit, transactions, reconciliation.

Brand identity arrives in the path; authentication is handled upstream.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_common.database import get_db_session
from src.ff_common.response import ApiResponse, success_for
from src.ff_wallet.application.schemas import (
    BalanceResponse,
    CreditRequest,
    DebitRequest,
    MutationResponse,
    ReconciliationResponse,
)
from src.ff_wallet.application.service import WalletService, get_wallet_service

router = APIRouter(prefix="/wallets", tags=["wallet"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Wallet = Annotated[WalletService, Depends(get_wallet_service)]


@router.get("/{brand_id}")
async def get_balance(
    brand_id: str, db: DbSession, wallet: Wallet, request: Request
) -> ApiResponse:
    account = await wallet.get_account(db, brand_id)
    return success_for(request, BalanceResponse.from_domain(account).model_dump())


@router.post("/{brand_id}/credit")
async def credit(
    brand_id: str, body: CreditRequest, db: DbSession, wallet: Wallet, request: Request
) -> ApiResponse:
    mutation = await wallet.credit(
        db, brand_id, body.amount_paise, body.reason.value, body.reference_id
    )
    return success_for(request, MutationResponse.from_domain(mutation).model_dump())


@router.post("/{brand_id}/debit")
async def debit(
    brand_id: str, body: DebitRequest, db: DbSession, wallet: Wallet, request: Request
) -> ApiResponse:
    mutation = await wallet.debit(
        db, brand_id, body.amount_paise, body.reason.value, body.reference_id
    )
    return success_for(request, MutationResponse.from_domain(mutation).model_dump())


@router.get("/{brand_id}/transactions")
async def list_transactions(
    brand_id: str,
    db: DbSession,
    wallet: Wallet,
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    txn_type: str | None = Query(None, description="Filter by CREDIT or DEBIT"),
) -> ApiResponse:
    data = await wallet.list_transactions(db, brand_id, cursor, limit, txn_type)
    return success_for(request, data.model_dump())


@router.get("/{brand_id}/reconciliation")
async def reconcile(
    brand_id: str, db: DbSession, wallet: Wallet, request: Request
) -> ApiResponse:
    report = await wallet.reconcile(db, brand_id)
    return success_for(request, ReconciliationResponse.from_domain(report).model_dump())
