"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands and aggregates.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ordering.pricing import MAX_LINE_QUANTITY


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    address: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=1, max_length=100)
    phone: str = Field(min_length=1, max_length=30)


class VariantSelection(BaseModel):
    """A variant picked by the customer; its price comes from the catalogue."""

    name: str = Field(min_length=1, max_length=50)
    value: str = Field(min_length=1, max_length=100)


class VariantSchema(BaseModel):
    name: str
    value: str
    price: float = 0.0


class ProductVariantSchema(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    value: str = Field(min_length=1, max_length=100)
    price: float = Field(ge=0, default=0.0)
    sku: str | None = Field(default=None, max_length=100)


class LineRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)
    variant: VariantSelection | None = None


_ADDRESS_EXAMPLE = {
    "name": "Ada Lovelace",
    "address": "12 St James's Square",
    "city": "London",
    "postal_code": "SW1Y 4JH",
    "country": "UK",
    "phone": "+44 20 7946 0000",
}


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, le=MAX_LINE_QUANTITY, default=1)
    variant: VariantSelection | None = None
    expected_revision: int | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "0f8a6c0e-7b0e-4d61-9a43-1d9a3d9f2b10",
                    "quantity": 2,
                    "variant": {"name": "size", "value": "M"},
                }
            ]
        }
    }


class UpdateCartQuantityRequest(BaseModel):
    quantity: int = Field(le=MAX_LINE_QUANTITY)
    variant: VariantSelection | None = None
    expected_revision: int | None = None


class RemoveFromCartRequest(BaseModel):
    variant: VariantSelection | None = None
    expected_revision: int | None = None


class ApplyCouponToCartRequest(BaseModel):
    coupon_code: str = Field(min_length=1, max_length=50)
    expected_revision: int | None = None


class MergeGuestCartRequest(BaseModel):
    guest_cart_items: list[LineRequest] = Field(default_factory=list)


class CartCheckoutRequest(BaseModel):
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: str
    notes: str | None = Field(default=None, max_length=1000)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "shipping_address": _ADDRESS_EXAMPLE,
                    "payment_method": "stripe",
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    items: list[LineRequest] = Field(min_length=1)
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: str
    coupon_code: str | None = None
    notes: str | None = Field(default=None, max_length=1000)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_id": "0f8a6c0e-7b0e-4d61-9a43-1d9a3d9f2b10", "quantity": 1}],
                    "shipping_address": _ADDRESS_EXAMPLE,
                    "payment_method": "stripe",
                    "coupon_code": "SAVE10",
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)
    expected_revision: int | None = None


class ShipOrderRequest(BaseModel):
    carrier: str | None = Field(default=None, max_length=100)
    tracking_number: str | None = Field(default=None, max_length=255)
    note: str | None = Field(default=None, max_length=500)
    expected_revision: int | None = None


class DeliverOrderRequest(BaseModel):
    note: str | None = Field(default=None, max_length=500)
    expected_revision: int | None = None


# ---------------------------------------------------------------------------
# Payment Request Schemas
# ---------------------------------------------------------------------------
class GatewayEventData(BaseModel):
    order_id: str | None = None
    transaction_id: str | None = None
    amount: float | None = None
    currency: str | None = None
    payment_method: str | None = None
    email: str | None = None
    reason: str | None = None


class PaymentWebhookRequest(BaseModel):
    type: str
    data: GatewayEventData = Field(default_factory=GatewayEventData)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "type": "payment.succeeded",
                    "data": {
                        "order_id": "6d1f4b0a-2c55-4c55-8a0e-1b9b8f3f3a21",
                        "transaction_id": "pi_3PqXyZ",
                        "amount": 68.8,
                        "currency": "USD",
                    },
                }
            ]
        }
    }


class RefundRequest(BaseModel):
    amount: float | None = Field(default=None, gt=0)
    reason: str | None = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Catalogue / Coupon Request Schemas
# ---------------------------------------------------------------------------
class AddProductRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    price: float = Field(ge=0)
    stock: int = Field(ge=0, default=0)
    image: str | None = None
    compare_at_price: float | None = Field(default=None, ge=0)
    low_stock_threshold: int = Field(ge=0, default=5)
    variants: list[ProductVariantSchema] = Field(default_factory=list)


class ProductVariantResponse(ProductVariantSchema):
    is_active: bool = True


class ChangePriceRequest(BaseModel):
    price: float = Field(ge=0)


class RestockRequest(BaseModel):
    quantity: int = Field(ge=1)


class DefineCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    kind: str
    value: float = Field(gt=0)
    min_amount: float = Field(ge=0, default=0.0)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str


class OrderIdResponse(BaseModel):
    order_id: str
    order_number: str


class ProductIdResponse(BaseModel):
    product_id: str


class StockResponse(BaseModel):
    product_id: str
    stock: int


class CartItemResponse(BaseModel):
    product_id: str
    name: str
    image: str = ""
    unit_price: float
    quantity: int
    variant: VariantSchema | None = None
    line_total: float
    restocked: bool = False
    added_at: datetime | None = None


class CartResponse(BaseModel):
    cart_id: str
    customer_id: str
    items: list[CartItemResponse]
    item_count: int
    total_items: int
    subtotal: float
    tax: float
    shipping: float
    coupon_code: str | None = None
    coupon_discount: float
    total: float
    currency: str
    revision: int
    issues: list[dict] = Field(default_factory=list)


class CartSummaryResponse(BaseModel):
    item_count: int
    total_items: int
    subtotal: float
    tax: float
    shipping: float
    coupon_discount: float
    coupon_code: str | None = None
    total: float
    currency: str


class CartCountResponse(BaseModel):
    count: int


class CartValidationResponse(BaseModel):
    valid: bool
    issues: list[dict]


class MergeResponse(BaseModel):
    cart: CartResponse
    items_merged: int
    items_skipped: int


class OrderItemResponse(BaseModel):
    product_id: str
    name: str
    image: str = ""
    unit_price: float
    quantity: int
    variant: VariantSchema | None = None
    line_total: float


class StatusEntryResponse(BaseModel):
    status: str
    timestamp: datetime
    note: str | None = None
    actor: str | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    customer_id: str
    status: str
    items: list[OrderItemResponse]
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: str
    items_price: float
    tax_price: float
    shipping_price: float
    discount_amount: float
    total_price: float
    currency: str
    coupon_code: str | None = None
    notes: str | None = None
    is_paid: bool
    paid_at: datetime | None = None
    transaction_id: str | None = None
    is_delivered: bool
    delivered_at: datetime | None = None
    shipped_at: datetime | None = None
    carrier: str | None = None
    tracking_number: str | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    refunded_at: datetime | None = None
    refund_amount: float | None = None
    estimated_delivery: datetime | None = None
    status_history: list[StatusEntryResponse]
    revision: int
    created_at: datetime | None = None


class OrderPageResponse(BaseModel):
    orders: list[OrderResponse]
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class TrackingResponse(BaseModel):
    """Public tracking view. Carries no payment or address data."""

    order_number: str
    status: str
    created_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    carrier: str | None = None
    tracking_number: str | None = None
    estimated_delivery: datetime | None = None
    status_history: list[StatusEntryResponse]


class ReorderResponse(BaseModel):
    items: list[LineRequest]
    unavailable_count: int


class PaymentMethodResponse(BaseModel):
    id: str
    refundable: bool


class WebhookResponse(BaseModel):
    status: str
    outcome: str


class CouponResponse(BaseModel):
    code: str
    kind: str
    value: float
    min_amount: float
    is_active: bool


class ProductResponse(BaseModel):
    product_id: str
    name: str
    image: str = ""
    price: float
    compare_at_price: float | None = None
    discount_percentage: int
    stock: int
    stock_status: str
    status: str
    variants: list[ProductVariantResponse] = Field(default_factory=list)
    revision: int


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
def _variant(variant) -> dict | None:
    if not variant:
        return None
    return {"name": variant.name, "value": variant.value, "price": variant.price or 0.0}


def _address(address) -> dict | None:
    if address is None:
        return None
    return {
        "name": address.name,
        "address": address.address,
        "city": address.city,
        "postal_code": address.postal_code,
        "country": address.country,
        "phone": address.phone,
    }


def _history(order) -> list[dict]:
    return [
        {"status": e.status, "timestamp": e.timestamp, "note": e.note, "actor": e.actor}
        for e in order.history
    ]


def cart_response(cart, issues=()) -> CartResponse:
    return CartResponse(
        cart_id=str(cart.id),
        customer_id=str(cart.customer_id),
        items=[
            CartItemResponse(
                product_id=str(item.product_id),
                name=item.name,
                image=item.image or "",
                unit_price=item.unit_price,
                quantity=item.quantity,
                variant=_variant(item.variant),
                line_total=float(item.line_total),
                restocked=bool(item.restocked),
                added_at=item.added_at,
            )
            for item in cart.lines
        ],
        item_count=cart.item_count,
        total_items=cart.total_items,
        subtotal=cart.subtotal,
        tax=cart.tax,
        shipping=cart.shipping,
        coupon_code=cart.coupon_code,
        coupon_discount=cart.coupon_discount or 0.0,
        total=cart.total,
        currency=cart.currency,
        revision=cart.revision or 0,
        issues=[issue.to_dict() for issue in issues],
    )


def order_response(order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id),
        status=order.status,
        items=[
            OrderItemResponse(
                product_id=str(item.product_id),
                name=item.name,
                image=item.image or "",
                unit_price=item.unit_price,
                quantity=item.quantity,
                variant=_variant(item.variant),
                line_total=float(item.line_total),
            )
            for item in order.lines
        ],
        shipping_address=_address(order.shipping_address),
        billing_address=_address(order.billing_address),
        payment_method=order.payment_method,
        items_price=order.items_price,
        tax_price=order.tax_price,
        shipping_price=order.shipping_price,
        discount_amount=order.discount_amount or 0.0,
        total_price=order.total_price,
        currency=order.currency,
        coupon_code=order.coupon_code,
        notes=order.notes,
        is_paid=bool(order.is_paid),
        paid_at=order.paid_at,
        transaction_id=order.transaction_id,
        is_delivered=bool(order.is_delivered),
        delivered_at=order.delivered_at,
        shipped_at=order.shipped_at,
        carrier=order.carrier,
        tracking_number=order.tracking_number,
        cancelled_at=order.cancelled_at,
        cancellation_reason=order.cancellation_reason,
        refunded_at=order.refunded_at,
        refund_amount=order.refund_amount,
        estimated_delivery=order.estimated_delivery,
        status_history=_history(order),
        revision=order.revision or 0,
        created_at=order.created_at,
    )


def tracking_response(order) -> TrackingResponse:
    return TrackingResponse(
        order_number=order.order_number,
        status=order.status,
        created_at=order.created_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        carrier=order.carrier,
        tracking_number=order.tracking_number,
        estimated_delivery=order.estimated_delivery,
        status_history=_history(order),
    )


def product_response(product) -> ProductResponse:
    return ProductResponse(
        product_id=str(product.id),
        name=product.name,
        image=product.image or "",
        price=product.price,
        compare_at_price=product.compare_at_price,
        discount_percentage=product.discount_percentage,
        stock=product.stock,
        stock_status=product.stock_status,
        status=product.status,
        variants=[
            ProductVariantResponse(
                name=v.name,
                value=v.value,
                price=v.price or 0.0,
                sku=v.sku,
                is_active=bool(v.is_active),
            )
            for v in product.variants or []
        ],
        revision=product.revision or 0,
    )


def coupon_response(coupon) -> CouponResponse:
    return CouponResponse(
        code=coupon.code,
        kind=coupon.kind,
        value=coupon.value,
        min_amount=coupon.min_amount or 0.0,
        is_active=bool(coupon.is_active),
    )
