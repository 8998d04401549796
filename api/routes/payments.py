"""
Payments API routes.

Keep this thin: request parsing and the response envelope only; all rules
live in the application service.
"""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, Request

from application.dtos.payments import (
    CheckoutDTO,
    CreatePaymentOrder,
    MarkPaymentFailed,
    PaymentOrderDTO,
    RefundPayment,
    VerificationResultDTO,
    VerifyPayment,
)
from application.services.payment_service import PaymentApplicationService
from api.dependencies import get_payment_service
from core.config import settings
from core.response import Response, error_response, render, success_response
from shared.codes.payment_codes import PaymentCode


router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/orders", response_model=Response[CheckoutDTO], summary="创建支付订单")
async def create_order(
    payload: CreatePaymentOrder,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    checkout = await service.create_order(payload)
    return success_response(data=checkout, message="Payment order created")


@router.post("/verify", response_model=Response[VerificationResultDTO], summary="校验支付签名")
async def verify_payment(
    payload: VerifyPayment,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    result = await service.verify(payload)
    if result.verified:
        return success_response(data=result, message=result.message)
    # 验签失败是正常业务结果：返回 400 并附带已记录为 failed 的支付记录
    response = error_response(
        code=PaymentCode.SIGNATURE_ERROR,
        message=result.message,
        error_type="PaymentVerificationFailed",
        data=result,
    )
    return render(response, 400)


@router.post("/refunds", response_model=Response[PaymentOrderDTO], summary="退款")
async def refund_payment(
    payload: RefundPayment,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    payment = await service.refund(payload)
    return success_response(data=payment, message="Refund processed")


@router.post("/failed", response_model=Response[PaymentOrderDTO], summary="标记支付失败")
async def mark_payment_failed(
    payload: MarkPaymentFailed,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    payment = await service.mark_failed(payload)
    return success_response(data=payment, message="Payment marked as failed")


@router.post("/webhooks/razorpay", summary="网关 Webhook")
async def razorpay_webhook(
    request: Request,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    raw_body = await request.body()
    headers = {k: v for k, v in request.headers.items()}
    outcome = await service.handle_webhook(headers, raw_body)
    # 200 acknowledges receipt per gateway conventions
    return success_response(data=outcome, message="Webhook received")


@router.get("/by-gateway-order/{external_order_id}", response_model=Response[PaymentOrderDTO])
async def get_by_gateway_order(
    external_order_id: str,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    return success_response(data=await service.get_by_external_order_id(external_order_id))


@router.get("/by-order/{order_id}", response_model=Response[PaymentOrderDTO])
async def get_by_order(
    order_id: str,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    return success_response(data=await service.get_by_order_id(order_id))


@router.get("/customers/{customer_id}", response_model=Response[List[PaymentOrderDTO]])
async def list_customer_payments(
    customer_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    return success_response(data=await service.list_by_customer(customer_id, skip, limit))


@router.get("/vendors/{vendor_id}", response_model=Response[List[PaymentOrderDTO]])
async def list_vendor_payments(
    vendor_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    return success_response(data=await service.list_by_vendor(vendor_id, skip, limit))


@router.get("/{payment_id}", response_model=Response[PaymentOrderDTO], summary="查询支付状态")
async def get_payment_status(
    payment_id: int,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    return success_response(data=await service.get_status(payment_id))
