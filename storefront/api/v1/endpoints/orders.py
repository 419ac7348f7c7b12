from typing import Optional

from fastapi import APIRouter, HTTPException, status, Query
from pydantic import ValidationError

from storefront.api.deps import Orders
from storefront.core.annotation import AnnotationValueError
from storefront.schemas.order import (
    NativeOrderState,
    Order,
    OrderCancelRequest,
    OrderListResponse,
    OrderPaymentUpdate,
    OrderStatusUpdate,
    PaymentRecord,
    PendingPaymentCheck,
)
from storefront.services.order_gateway import OrderNotFoundError


router = APIRouter()


def _not_found(e: OrderNotFoundError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=e.message
    )


@router.get("", response_model=OrderListResponse)
async def list_orders(
    service: Orders,
    partner_id: Optional[int] = Query(None, description="Customer (res.partner) id"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    state: Optional[NativeOrderState] = Query(None),
):
    """
    Get one page of a customer's order history, newest first.

    Loaded pages are kept as one cached result set per
    (partner, page size, filters), which order detail reads draw from.
    """
    orders = await service.list_orders(partner_id, page_size=page_size, page=page, state=state)
    return OrderListResponse(items=orders, page=page, size=page_size, partner_id=partner_id)


@router.get("/recent", response_model=OrderListResponse)
async def list_recent_orders(
    service: Orders,
    partner_id: Optional[int] = Query(None),
    limit: int = Query(20, ge=1, le=100),
):
    """Get the customer's latest orders (single, non-paged list)."""
    orders = await service.list_recent_orders(partner_id, limit=limit)
    return OrderListResponse(items=orders, size=limit, partner_id=partner_id)


@router.get("/pending-payments", response_model=OrderListResponse)
async def list_pending_payment_orders(
    service: Orders,
    partner_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=200),
):
    """Orders awaiting payment that carry an unsettled payment record."""
    orders = await service.get_orders_with_pending_payments(partner_id, limit=limit)
    return OrderListResponse(items=orders, size=limit, partner_id=partner_id)


@router.get("/{order_id}", response_model=Order)
async def get_order(
    order_id: int,
    service: Orders,
    partner_id: Optional[int] = Query(None),
):
    """
    Get order details by ID.

    Served from the customer's cached order lists when possible (these
    carry product images), otherwise read from the backend.
    """
    try:
        return await service.get_order(order_id, partner_id)
    except OrderNotFoundError as e:
        raise _not_found(e)


@router.get("/{order_id}/pending-payment", response_model=PendingPaymentCheck)
async def check_pending_payment(
    order_id: int,
    service: Orders,
    partner_id: Optional[int] = Query(None),
):
    """Check whether an order still waits for its payment to settle."""
    try:
        pending = await service.has_pending_payment(order_id, partner_id)
    except OrderNotFoundError as e:
        raise _not_found(e)
    return PendingPaymentCheck(order_id=order_id, has_pending_payment=pending)


@router.put("/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    service: Orders,
):
    """
    Move an order to a new lifecycle status.

    Statuses the backend does not know (e.g. `shipped`) are stored as a tag
    in the order note next to the nearest native state.
    """
    try:
        return await service.set_status(order_id, data.status, partner_id=data.partner_id)
    except OrderNotFoundError as e:
        raise _not_found(e)
    except AnnotationValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )


@router.put("/{order_id}/payment", response_model=Order)
async def update_order_payment(
    order_id: int,
    data: OrderPaymentUpdate,
    service: Orders,
):
    """
    Attach the order's active payment, replacing any earlier one.

    Example body:
        {"provider": "dana", "payment_id": "PAY1", "status": "PENDING",
         "order_status": "waiting_payment", "partner_id": 7}
    """
    try:
        record = PaymentRecord(provider=data.provider, payment_id=data.payment_id, status=data.status)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    try:
        return await service.set_payment(
            order_id, record, order_status=data.order_status, partner_id=data.partner_id
        )
    except OrderNotFoundError as e:
        raise _not_found(e)
    except AnnotationValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )


@router.post("/{order_id}/cancel", response_model=Order)
async def cancel_order(
    order_id: int,
    service: Orders,
    data: Optional[OrderCancelRequest] = None,
):
    """Cancel an order. An optional reason is appended to the order note."""
    data = data or OrderCancelRequest()
    try:
        return await service.cancel_order(order_id, reason=data.reason, partner_id=data.partner_id)
    except OrderNotFoundError as e:
        raise _not_found(e)


@router.post("/{order_id}/confirm", response_model=Order)
async def confirm_order(
    order_id: int,
    service: Orders,
    partner_id: Optional[int] = Query(None),
):
    """Confirm a quotation."""
    try:
        return await service.confirm_order(order_id, partner_id=partner_id)
    except OrderNotFoundError as e:
        raise _not_found(e)
