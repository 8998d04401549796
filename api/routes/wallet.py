"""
钱包路由 - /customers/{customer_id}/wallet
"""
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, Query

from application.dtos.wallet import (
    AddMoneyRequest,
    ApplyVoucherRequest,
    BalanceDTO,
    LockWalletRequest,
    PayRequest,
    SufficientBalanceDTO,
    WalletDTO,
    WalletOperationResult,
    WalletSummaryDTO,
    WalletTransactionDTO,
    WithdrawRequest,
)
from application.services.wallet_service import WalletApplicationService
from api.dependencies import get_wallet_service
from core.response import Response as ApiResponse, success_response
from domain.wallet.entity import TransactionType


router = APIRouter(prefix="/customers/{customer_id}/wallet", tags=["Wallet"])


@router.get("", summary="获取或创建钱包", response_model=ApiResponse[WalletDTO])
async def get_wallet(customer_id: str, service: WalletApplicationService = Depends(get_wallet_service)):
    return success_response(data=await service.get_or_create(customer_id))


@router.get("/balance", summary="查询余额", response_model=ApiResponse[BalanceDTO])
async def get_balance(customer_id: str, service: WalletApplicationService = Depends(get_wallet_service)):
    return success_response(data=await service.get_balance(customer_id))


@router.get("/summary", summary="钱包汇总", response_model=ApiResponse[WalletSummaryDTO])
async def get_summary(customer_id: str, service: WalletApplicationService = Depends(get_wallet_service)):
    return success_response(data=await service.summary(customer_id))


@router.get("/check-balance", summary="余额是否充足", response_model=ApiResponse[SufficientBalanceDTO])
async def check_balance(
    customer_id: str,
    amount: Decimal = Query(...),
    service: WalletApplicationService = Depends(get_wallet_service),
):
    return success_response(data=await service.has_sufficient_balance(customer_id, amount))


@router.post("/add", summary="充值/入账", response_model=ApiResponse[WalletOperationResult])
async def add_money(
    customer_id: str,
    payload: AddMoneyRequest,
    service: WalletApplicationService = Depends(get_wallet_service),
):
    result = await service.credit(
        customer_id,
        payload.amount,
        payload.description or "Money added to wallet",
        reference_id=payload.reference_id,
        reference_type=payload.reference_type,
        tx_type=payload.type,
    )
    return success_response(data=result, message="Money added to wallet")


@router.post("/pay", summary="钱包支付", response_model=ApiResponse[WalletOperationResult])
async def pay_with_wallet(
    customer_id: str,
    payload: PayRequest,
    service: WalletApplicationService = Depends(get_wallet_service),
):
    result = await service.pay_with_wallet(customer_id, payload.amount, payload.order_id, payload.description)
    return success_response(data=result, message="Payment successful")


@router.post("/withdraw", summary="提现", response_model=ApiResponse[WalletOperationResult])
async def withdraw(
    customer_id: str,
    payload: WithdrawRequest,
    service: WalletApplicationService = Depends(get_wallet_service),
):
    result = await service.withdraw(customer_id, payload.amount, payload.method, payload.description)
    return success_response(data=result, message="Withdrawal initiated")


@router.post("/voucher/apply", summary="使用代金券", response_model=ApiResponse[WalletOperationResult])
async def apply_voucher(
    customer_id: str,
    payload: ApplyVoucherRequest,
    service: WalletApplicationService = Depends(get_wallet_service),
):
    result = await service.apply_voucher(customer_id, payload.voucher_code, payload.amount, payload.description)
    return success_response(data=result, message="Voucher applied")


@router.get("/transactions", summary="交易流水", response_model=ApiResponse[List[WalletTransactionDTO]])
async def transaction_history(customer_id: str, service: WalletApplicationService = Depends(get_wallet_service)):
    return success_response(data=await service.transaction_history(customer_id))


@router.get("/transactions/recent", summary="最近流水", response_model=ApiResponse[List[WalletTransactionDTO]])
async def recent_transactions(
    customer_id: str,
    limit: int = Query(10, ge=1, le=100),
    service: WalletApplicationService = Depends(get_wallet_service),
):
    return success_response(data=await service.recent_transactions(customer_id, limit))


@router.get(
    "/transactions/type/{tx_type}",
    summary="按类型查询流水",
    response_model=ApiResponse[List[WalletTransactionDTO]],
)
async def transactions_by_type(
    customer_id: str,
    tx_type: TransactionType,
    service: WalletApplicationService = Depends(get_wallet_service),
):
    return success_response(data=await service.transactions_by_type(customer_id, tx_type))


@router.post("/lock", summary="锁定钱包", response_model=ApiResponse[WalletDTO])
async def lock_wallet(
    customer_id: str,
    payload: LockWalletRequest,
    service: WalletApplicationService = Depends(get_wallet_service),
):
    return success_response(data=await service.lock(customer_id, payload.reason), message="Wallet locked")


@router.post("/unlock", summary="解锁钱包", response_model=ApiResponse[WalletDTO])
async def unlock_wallet(customer_id: str, service: WalletApplicationService = Depends(get_wallet_service)):
    return success_response(data=await service.unlock(customer_id), message="Wallet unlocked")


@router.post("/deactivate", summary="停用钱包", response_model=ApiResponse[WalletDTO])
async def deactivate_wallet(customer_id: str, service: WalletApplicationService = Depends(get_wallet_service)):
    return success_response(data=await service.deactivate(customer_id), message="Wallet deactivated")


@router.post("/reactivate", summary="重新启用钱包", response_model=ApiResponse[WalletDTO])
async def reactivate_wallet(customer_id: str, service: WalletApplicationService = Depends(get_wallet_service)):
    return success_response(data=await service.reactivate(customer_id), message="Wallet reactivated")
