from enum import Enum
from pydantic import BaseModel, Field, computed_field
from typing import Optional, List


# ==================== STATUS ENUMS ====================

class NativeOrderState(str, Enum):
    """sale.order states as stored by the backend."""
    DRAFT = "draft"
    SENT = "sent"
    SALE = "sale"  # Confirmed
    DONE = "done"
    CANCEL = "cancel"


class OrderStatus(str, Enum):
    """Effective order status seen by the storefront (native states + extended lifecycle)."""
    # Native states
    DRAFT = "draft"
    SENT = "sent"
    SALE = "sale"
    DONE = "done"
    CANCEL = "cancel"
    # Extended lifecycle, carried as annotation tags
    WAITING_PAYMENT = "waiting_payment"
    PAYMENT_CONFIRMED = "payment_confirmed"
    ADMIN_REVIEW = "admin_review"
    APPROVED = "approved"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    RETURN_APPROVED = "return_approved"
    INSPECTING = "inspecting"


# ==================== PAYMENT SCHEMAS ====================

class PaymentRecord(BaseModel):
    """Single active payment attached to an order through its annotation."""
    provider: str = Field(..., min_length=1, description="Payment provider / method, e.g. 'dana'")
    payment_id: str = Field(..., min_length=1, description="External payment id")
    status: str = Field(..., min_length=1, description="Provider-specific payment status")

    model_config = {"frozen": True, "str_strip_whitespace": True}


# ==================== ORDER SCHEMAS ====================

class OrderLine(BaseModel):
    """sale.order.line as seen by the storefront."""
    id: Optional[int] = None
    product_id: Optional[int] = None
    product_name: str = "Product"
    quantity: float = 0
    price_unit: float = 0
    price_subtotal: float = 0
    price_total: float = 0
    discount: Optional[float] = None
    tax_ids: List[int] = Field(default_factory=list)
    image_128: Optional[str] = None  # base64 payload, only present on list reads

    @computed_field
    @property
    def image(self) -> Optional[str]:
        """Data URI for the line image, if any."""
        if not self.image_128:
            return None
        return f"data:image/jpeg;base64,{self.image_128}"


class OrderItem(BaseModel):
    """Simplified line view for order cards."""
    id: str
    name: str
    quantity: float
    price: float
    image_128: Optional[str] = None
    image: Optional[str] = None


class Order(BaseModel):
    """
    Decorated order.

    `state` is the raw backend state and `note` the raw annotation; consumers
    should read `status`, `status_text` and `payment`, which are derived from
    both by the annotation codecs.
    """
    id: int
    name: str = ""
    partner_id: Optional[int] = None
    partner_name: Optional[str] = None
    date_order: Optional[str] = None
    state: str = NativeOrderState.DRAFT.value
    note: str = ""
    status: str = NativeOrderState.DRAFT.value
    status_text: str = ""
    payment: Optional[PaymentRecord] = None
    order_line: List[OrderLine] = Field(default_factory=list)
    amount_untaxed: float = 0
    amount_tax: float = 0
    amount_total: float = 0
    currency: Optional[str] = None

    @computed_field
    @property
    def transaction_id(self) -> str:
        return self.name or f"TRX-{self.id}"

    @computed_field
    @property
    def total_items(self) -> int:
        return len(self.order_line)

    @computed_field
    @property
    def items(self) -> List[OrderItem]:
        return [
            OrderItem(
                id=str(line.id) if line.id is not None else f"line_{index}",
                name=line.product_name,
                quantity=line.quantity,
                price=line.price_unit,
                image_128=line.image_128,
                image=line.image,
            )
            for index, line in enumerate(self.order_line)
        ]

    @property
    def has_images(self) -> bool:
        """True if any line carries an image payload."""
        return any(line.image_128 for line in self.order_line)


class OrderFilter(BaseModel):
    """List query parameters."""
    partner_id: Optional[int] = None
    state: Optional[NativeOrderState] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    limit: int = Field(20, ge=1, le=200)
    offset: int = Field(0, ge=0)


# ==================== REQUEST SCHEMAS ====================

class OrderStatusUpdate(BaseModel):
    """Request to move an order to a new effective status."""
    status: str = Field(..., min_length=1, description="Effective status code, e.g. 'shipped'")
    partner_id: Optional[int] = None


class OrderPaymentUpdate(BaseModel):
    """Request to attach a payment record to an order."""
    provider: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)
    order_status: Optional[str] = Field(None, description="Optional effective status written in the same update")
    partner_id: Optional[int] = None

    model_config = {"str_strip_whitespace": True}


class OrderCancelRequest(BaseModel):
    reason: Optional[str] = None
    partner_id: Optional[int] = None


# ==================== ACTIVITY SCHEMAS ====================

class ActivityType(str, Enum):
    ORDER = "order"
    PAYMENT = "payment"
    DELIVERY = "delivery"


class Activity(BaseModel):
    """Timeline entry derived from an order's effective status."""
    id: str
    type: ActivityType
    title: str
    description: str
    date: Optional[str] = None
    status: str
    icon: Optional[str] = None
    amount: Optional[float] = None
    order_id: int


# ==================== RESPONSE SCHEMAS ====================

class OrderListResponse(BaseModel):
    items: List[Order]
    page: int = 1
    size: int
    partner_id: Optional[int] = None


class PendingPaymentCheck(BaseModel):
    order_id: int
    has_pending_payment: bool


class ActivityListResponse(BaseModel):
    items: List[Activity]
