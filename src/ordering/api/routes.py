"""FastAPI routes for the Ordering domain — carts, orders, payments, coupons
and the catalogue view.

Every write to a cart, order or product runs under that document's lock
(see ``ordering.utils.locks``). Business-rule failures propagate as
``StorefrontError`` and are turned into responses by
``ordering.api.errors.register_error_handlers``.
"""

import json

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from pydantic import ValidationError
from protean.utils.globals import current_domain

from ordering.actor import Actor
from ordering.api.identity import admin_actor, current_actor
from ordering.api.schemas import (
    AddProductRequest,
    AddToCartRequest,
    ApplyCouponToCartRequest,
    CancelOrderRequest,
    CartCheckoutRequest,
    CartCountResponse,
    CartResponse,
    CartSummaryResponse,
    CartValidationResponse,
    ChangePriceRequest,
    CouponResponse,
    CreateOrderRequest,
    DefineCouponRequest,
    DeliverOrderRequest,
    MergeGuestCartRequest,
    MergeResponse,
    OrderIdResponse,
    OrderPageResponse,
    OrderResponse,
    PaymentMethodResponse,
    PaymentWebhookRequest,
    ProductIdResponse,
    ProductResponse,
    ProductVariantSchema,
    RefundRequest,
    RemoveFromCartRequest,
    ReorderResponse,
    RestockRequest,
    ShipOrderRequest,
    StatusResponse,
    StockResponse,
    TrackingResponse,
    UpdateCartQuantityRequest,
    WebhookResponse,
    cart_response,
    coupon_response,
    order_response,
    product_response,
    tracking_response,
)
from ordering.cart.cart import ShoppingCart
from ordering.cart.coupons import ApplyCouponToCart, RemoveCouponFromCart
from ordering.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity
from ordering.cart.management import ClearCart, MergeGuestCart, RefreshCart
from ordering.cart.validation import validate_cart
from ordering.catalogue.management import (
    ActivateProduct,
    AddProduct,
    AddProductVariant,
    ArchiveProduct,
    ChangeProductPrice,
    DeactivateProduct,
    RetireProductVariant,
    load_product,
)
from ordering.catalogue.store import CatalogStore
from ordering.checkout.checkout import CheckoutService
from ordering.coupon.coupon import Coupon
from ordering.coupon.management import DefineCoupon, RetireCoupon
from ordering.gateway import get_gateway
from ordering.order.cancellation import cancel_order, restock_cancelled_order
from ordering.order.fulfillment import DeliverOrder, ShipOrder
from ordering.order.order import REFUNDABLE_METHODS, PaymentMethod, load_order
from ordering.order.payment import process_gateway_event
from ordering.order.queries import get_order, list_all_orders, list_orders, reorder, track_order
from ordering.order.refund import refund_order
from ordering.utils.dispatch import dispatch
from ordering.utils.locks import cart_key, order_key, product_key

logger = structlog.get_logger(__name__)


def _variant(body_variant) -> dict | None:
    return body_variant.model_dump() if body_variant else None


def _encoded_variant(body_variant) -> str | None:
    return json.dumps(body_variant.model_dump()) if body_variant else None


def _page_response(page) -> OrderPageResponse:
    return OrderPageResponse(
        orders=[order_response(o) for o in page.items],
        page=page.page,
        limit=page.limit,
        total=page.total,
        total_pages=page.total_pages,
        has_next=page.has_next,
        has_prev=page.has_prev,
    )


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
async def get_cart(actor: Actor = Depends(current_actor)) -> CartResponse:
    """Return the cart after reconciling it with the catalogue."""
    cart, issues = dispatch(RefreshCart(customer_id=actor.customer_id), cart_key(actor.customer_id))
    return cart_response(cart, issues)


@cart_router.get("/summary", response_model=CartSummaryResponse)
async def get_cart_summary(actor: Actor = Depends(current_actor)) -> CartSummaryResponse:
    cart = current_domain.repository_for(ShoppingCart).for_customer(actor.customer_id)
    if cart is None:
        cart = ShoppingCart.create(customer_id=actor.customer_id)
    return CartSummaryResponse(**cart.summary())


@cart_router.get("/count", response_model=CartCountResponse)
async def get_cart_count(actor: Actor = Depends(current_actor)) -> CartCountResponse:
    cart = current_domain.repository_for(ShoppingCart).for_customer(actor.customer_id)
    return CartCountResponse(count=cart.total_items if cart else 0)


@cart_router.get("/validate", response_model=CartValidationResponse)
async def validate(actor: Actor = Depends(current_actor)) -> CartValidationResponse:
    """Report stock, availability and price problems without changing the cart."""
    cart = current_domain.repository_for(ShoppingCart).for_customer(actor.customer_id)
    issues = validate_cart(cart, CatalogStore()) if cart else []
    return CartValidationResponse(valid=not issues, issues=[i.to_dict() for i in issues])


@cart_router.post("/items", status_code=201, response_model=CartResponse)
async def add_to_cart(body: AddToCartRequest, actor: Actor = Depends(current_actor)) -> CartResponse:
    command = AddToCart(
        customer_id=actor.customer_id,
        product_id=body.product_id,
        quantity=body.quantity,
        variant=_encoded_variant(body.variant),
        expected_revision=body.expected_revision,
    )
    cart = dispatch(command, cart_key(actor.customer_id))
    return cart_response(cart)


@cart_router.put("/items/{product_id}", response_model=CartResponse)
async def update_cart_quantity(
    product_id: str,
    body: UpdateCartQuantityRequest,
    actor: Actor = Depends(current_actor),
) -> CartResponse:
    """Set a line's quantity; zero or less removes the line."""
    command = UpdateCartQuantity(
        customer_id=actor.customer_id,
        product_id=product_id,
        quantity=body.quantity,
        variant=_encoded_variant(body.variant),
        expected_revision=body.expected_revision,
    )
    cart = dispatch(command, cart_key(actor.customer_id))
    return cart_response(cart)


@cart_router.post("/items/{product_id}/remove", response_model=CartResponse)
async def remove_from_cart(
    product_id: str,
    body: RemoveFromCartRequest,
    actor: Actor = Depends(current_actor),
) -> CartResponse:
    command = RemoveFromCart(
        customer_id=actor.customer_id,
        product_id=product_id,
        variant=_encoded_variant(body.variant),
        expected_revision=body.expected_revision,
    )
    cart = dispatch(command, cart_key(actor.customer_id))
    return cart_response(cart)


@cart_router.delete("", response_model=CartResponse)
async def clear_cart(
    expected_revision: int | None = Query(default=None),
    actor: Actor = Depends(current_actor),
) -> CartResponse:
    command = ClearCart(customer_id=actor.customer_id, expected_revision=expected_revision)
    cart = dispatch(command, cart_key(actor.customer_id))
    return cart_response(cart)


@cart_router.post("/coupon", response_model=CartResponse)
async def apply_coupon(body: ApplyCouponToCartRequest, actor: Actor = Depends(current_actor)) -> CartResponse:
    command = ApplyCouponToCart(
        customer_id=actor.customer_id,
        coupon_code=body.coupon_code,
        expected_revision=body.expected_revision,
    )
    cart = dispatch(command, cart_key(actor.customer_id))
    return cart_response(cart)


@cart_router.delete("/coupon", response_model=CartResponse)
async def remove_coupon(actor: Actor = Depends(current_actor)) -> CartResponse:
    cart = dispatch(RemoveCouponFromCart(customer_id=actor.customer_id), cart_key(actor.customer_id))
    return cart_response(cart)


@cart_router.post("/merge", response_model=MergeResponse)
async def merge_guest_cart(body: MergeGuestCartRequest, actor: Actor = Depends(current_actor)) -> MergeResponse:
    command = MergeGuestCart(
        customer_id=actor.customer_id,
        guest_cart_items=json.dumps(
            [
                {"product_id": item.product_id, "quantity": item.quantity, "variant": _variant(item.variant)}
                for item in body.guest_cart_items
            ]
        ),
    )
    cart, merged, skipped = dispatch(command, cart_key(actor.customer_id))
    return MergeResponse(cart=cart_response(cart), items_merged=merged, items_skipped=skipped)


@cart_router.post("/checkout", status_code=201, response_model=OrderResponse)
async def checkout_cart(body: CartCheckoutRequest, actor: Actor = Depends(current_actor)) -> OrderResponse:
    """Turn the cart into a pending order."""
    order = CheckoutService().checkout_cart(
        actor,
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        payment_method=body.payment_method,
        notes=body.notes,
    )
    return order_response(order)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def create_order(body: CreateOrderRequest, actor: Actor = Depends(current_actor)) -> OrderIdResponse:
    """Place an order for explicit lines."""
    order = CheckoutService().place_order(
        actor,
        items=[
            {"product_id": item.product_id, "quantity": item.quantity, "variant": _variant(item.variant)}
            for item in body.items
        ],
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        payment_method=body.payment_method,
        coupon_code=body.coupon_code,
        notes=body.notes,
    )
    return OrderIdResponse(order_id=str(order.id), order_number=order.order_number)


@order_router.get("", response_model=OrderPageResponse)
async def my_orders(
    status: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    actor: Actor = Depends(current_actor),
) -> OrderPageResponse:
    return _page_response(list_orders(actor, status=status, page=page, limit=limit))


@order_router.get("/admin/all", response_model=OrderPageResponse)
async def all_orders(
    status: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    actor: Actor = Depends(admin_actor),
) -> OrderPageResponse:
    return _page_response(list_all_orders(actor, status=status, page=page, limit=limit))


@order_router.get("/track/{order_number}", response_model=TrackingResponse)
async def track(order_number: str) -> TrackingResponse:
    """Public tracking by order number."""
    return tracking_response(track_order(order_number))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_one(order_id: str, actor: Actor = Depends(current_actor)) -> OrderResponse:
    return order_response(get_order(order_id, actor))


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel(order_id: str, body: CancelOrderRequest, actor: Actor = Depends(current_actor)) -> OrderResponse:
    order = cancel_order(order_id, actor, reason=body.reason, expected_revision=body.expected_revision)
    return order_response(order)


@order_router.post("/{order_id}/restock", response_model=OrderResponse)
async def restock_order(order_id: str, actor: Actor = Depends(admin_actor)) -> OrderResponse:
    """Finish putting back the stock of a cancelled order. Safe to repeat."""
    restock_cancelled_order(order_id)
    return order_response(load_order(order_id))


@order_router.put("/{order_id}/ship"
, response_model=OrderResponse)
async def ship(order_id: str, body: ShipOrderRequest, actor: Actor = Depends(admin_actor)) -> OrderResponse:
    command = ShipOrder(
        order_id=order_id,
        carrier=body.carrier,
        tracking_number=body.tracking_number,
        note=body.note,
        actor=actor.label,
        expected_revision=body.expected_revision,
    )
    return order_response(dispatch(command, order_key(order_id)))


@order_router.put("/{order_id}/deliver", response_model=OrderResponse)
async def deliver(order_id: str, body: DeliverOrderRequest, actor: Actor = Depends(admin_actor)) -> OrderResponse:
    command = DeliverOrder(
        order_id=order_id,
        note=body.note,
        actor=actor.label,
        expected_revision=body.expected_revision,
    )
    return order_response(dispatch(command, order_key(order_id)))


@order_router.post("/{order_id}/reorder", response_model=ReorderResponse)
async def reorder_items(order_id: str, actor: Actor = Depends(current_actor)) -> ReorderResponse:
    """Lines of a past order that are available to buy again."""
    available, unavailable_count = reorder(order_id, actor)
    return ReorderResponse(items=available, unavailable_count=unavailable_count)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/webhook", response_model=WebhookResponse)
async def payment_webhook(
    request: Request,
    x_gateway_signature: str = Header(default=""),
) -> WebhookResponse:
    """Apply a payment gateway callback. Safe to deliver more than once."""
    payload = (await request.body()).decode("utf-8")
    gateway = get_gateway()
    if not gateway.verify_webhook_signature(payload, x_gateway_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        event = PaymentWebhookRequest.model_validate_json(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail="Malformed webhook payload") from exc

    outcome = process_gateway_event(event.model_dump())
    return WebhookResponse(status="processed", outcome=outcome)


@payment_router.post("/orders/{order_id}/refund", response_model=OrderResponse)
async def refund(order_id: str, body: RefundRequest, actor: Actor = Depends(admin_actor)) -> OrderResponse:
    order = refund_order(order_id, actor, amount=body.amount, reason=body.reason)
    return order_response(order)


@payment_router.get("/methods", response_model=list[PaymentMethodResponse])
async def payment_methods() -> list[PaymentMethodResponse]:
    return [PaymentMethodResponse(id=m.value, refundable=m in REFUNDABLE_METHODS) for m in PaymentMethod]


# ---------------------------------------------------------------------------
# Coupon Router
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])


@coupon_router.get("", response_model=list[CouponResponse])
async def active_coupons() -> list[CouponResponse]:
    return [coupon_response(c) for c in current_domain.repository_for(Coupon).active()]


@coupon_router.put("", response_model=StatusResponse)
async def define_coupon(body: DefineCouponRequest, actor: Actor = Depends(admin_actor)) -> StatusResponse:
    command = DefineCoupon(code=body.code, kind=body.kind, value=body.value, min_amount=body.min_amount)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="defined")


@coupon_router.delete("/{code}", response_model=StatusResponse)
async def retire_coupon(code: str, actor: Actor = Depends(admin_actor)) -> StatusResponse:
    current_domain.process(RetireCoupon(code=code), asynchronous=False)
    return StatusResponse(status="retired")


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def add_product(body: AddProductRequest, actor: Actor = Depends(admin_actor)) -> ProductIdResponse:
    command = AddProduct(
        name=body.name,
        price=body.price,
        stock=body.stock,
        image=body.image,
        compare_at_price=body.compare_at_price,
        low_stock_threshold=body.low_stock_threshold,
        variants=json.dumps([v.model_dump() for v in body.variants]) if body.variants else None,
    )
    product_id = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=product_id)


@product_router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str) -> ProductResponse:
    return product_response(load_product(product_id))


@product_router.post("/{product_id}/variants", status_code=201, response_model=ProductResponse)
async def add_product_variant(
    product_id: str,
    body: ProductVariantSchema,
    actor: Actor = Depends(admin_actor),
) -> ProductResponse:
    command = AddProductVariant(product_id=product_id, **body.model_dump())
    return product_response(dispatch(command, product_key(product_id)))


@product_router.delete("/{product_id}/variants", response_model=ProductResponse)
async def retire_product_variant(
    product_id: str,
    name: str = Query(min_length=1),
    value: str = Query(min_length=1),
    actor: Actor = Depends(admin_actor),
) -> ProductResponse:
    command = RetireProductVariant(product_id=product_id, name=name, value=value)
    return product_response(dispatch(command, product_key(product_id)))


@product_router.put("/{product_id}/price", response_model=StatusResponse)
async def change_price(
    product_id: str,
    body: ChangePriceRequest,
    actor: Actor = Depends(admin_actor),
) -> StatusResponse:
    dispatch(ChangeProductPrice(product_id=product_id, price=body.price), product_key(product_id))
    return StatusResponse(status="price_changed")


@product_router.put("/{product_id}/restock", response_model=StockResponse)
async def restock(product_id: str, body: RestockRequest, actor: Actor = Depends(admin_actor)) -> StockResponse:
    CatalogStore().increment_stock(product_id, body.quantity)
    return StockResponse(product_id=product_id, stock=load_product(product_id).stock)


@product_router.put("/{product_id}/deactivate", response_model=StatusResponse)
async def deactivate(product_id: str, actor: Actor = Depends(admin_actor)) -> StatusResponse:
    dispatch(DeactivateProduct(product_id=product_id), product_key(product_id))
    return StatusResponse(status="inactive")


@product_router.put("/{product_id}/archive", response_model=StatusResponse)
async def archive(product_id: str, actor: Actor = Depends(admin_actor)) -> StatusResponse:
    dispatch(ArchiveProduct(product_id=product_id), product_key(product_id))
    return StatusResponse(status="archived")


@product_router.put("/{product_id}/activate", response_model=StatusResponse)
async def activate(product_id: str, actor: Actor = Depends(admin_actor)) -> StatusResponse:
    dispatch(ActivateProduct(product_id=product_id), product_key(product_id))
    return StatusResponse(status="active")
