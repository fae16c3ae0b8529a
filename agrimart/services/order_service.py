# agrimart/services/order_service.py
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy.orm import Session

from agrimart.data.models.order import OrderModel
from agrimart.data.models.order_item import OrderItemModel
from agrimart.data.models.order_status_history import OrderStatusHistoryModel
from agrimart.domain.errors import (
    InvalidPaymentState,
    InvalidTransition,
    NotFound,
    Unauthorized,
    ValidationError,
)
from agrimart.domain.order_status import (
    PAYMENT_DRIVEN,
    PAYMENT_METHODS,
    RESERVATION_HELD,
    OrderStatus,
    PaymentStatus,
    is_valid_transition,
    parse_status,
)
from agrimart.domain.pricing import order_totals
from agrimart.domain.rules import customer_snapshot, is_intra_state, validate_address, validate_quantity
from agrimart.repos.cart_repo import CartRepo
from agrimart.repos.order_repo import OrderRepo
from agrimart.repos.product_repo import ProductRepo
from agrimart.services.cart_service import CartService
from agrimart.services.inventory_service import InventoryService
from agrimart.services.lock_service import LockService
from agrimart.services.notification_service import NotificationService
from agrimart.services.pricing_service import price_product
from agrimart.services.profile_client import ProfileClient
from agrimart.utils.settings import (
    ORDER_NUMBER_PREFIX,
    SELLER_ADDRESS,
    SELLER_GSTIN,
    SELLER_HOME_STATE,
    SELLER_NAME,
    SHIPPING_CHARGES,
)
from agrimart.utils.logging import get_logger

logger = get_logger(__name__)

STAFF_ROLES = ("admin", "employee")


def _now():
    return datetime.now(timezone.utc)


def _stamp(prefix: str, order_id: int, at: datetime) -> str:
    return f"{prefix}-{at:%Y%m%d}-{order_id:05d}"


def order_to_dict(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "buyer_id": order.buyer_id,
        "customer_snapshot": order.customer_snapshot,
        "shipping_address": order.shipping_address,
        "billing_address": order.billing_address,
        "customer_notes": order.customer_notes,
        "items": [
            {
                "product_id": i.product_id,
                "product_name": i.product_name,
                "unit": i.product_unit,
                "hsn_code": i.hsn_code,
                "gst_rate": i.gst_rate,
                "quantity": i.quantity,
                "unit_price": i.unit_price,
                "discount_pct": i.discount_pct,
                "line_subtotal": i.line_subtotal,
                "line_tax": i.line_tax,
                "line_total": i.line_total,
            }
            for i in order.items
        ],
        "subtotal": order.subtotal,
        "total_discount": order.total_discount,
        "tax_breakdown": {"cgst": order.cgst, "sgst": order.sgst, "igst": order.igst},
        "total_gst": order.total_gst,
        "shipping_charges": order.shipping_charges,
        "round_off": order.round_off,
        "grand_total": order.grand_total,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "payment_reference": order.payment_reference,
        "payment_submitted_at": order.payment_submitted_at,
        "payment_confirmed_at": order.payment_confirmed_at,
        "payment_confirmed_by": order.payment_confirmed_by,
        "invoice_number": order.invoice_number,
        "accepted_at": order.accepted_at,
        "delivered_at": order.delivered_at,
        "cancellation_reason": order.cancellation_reason,
        "cancelled_at": order.cancelled_at,
        "cancelled_by": order.cancelled_by,
        "status_history": [
            {
                "status": h.status,
                "note": h.note,
                "actor_id": h.actor_id,
                "timestamp": h.created_at,
            }
            for h in order.status_history
        ],
        "created_at": order.created_at,
    }


class OrderService:
    """
    Order lifecycle.

    Checkout turns the buyer's cart into a frozen order and reserves stock for
    every line in one transaction. Status changes go through the transition
    table only, under a per-order lock, and carry their ledger side effects:
    accepted deducts, cancelled releases while the reservation is still held.
    """

    def __init__(
        self,
        db: Session,
        lock_service: LockService,
        profile_client: ProfileClient | None = None,
        notification_service: NotificationService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.products = ProductRepo(db)
        self.cart_service = CartService(db)
        self.inventory = InventoryService(db)
        self.lock_service = lock_service
        self.profile_client = profile_client or ProfileClient()
        self.notification_service = notification_service or NotificationService()

    #commands

    def create_order(
        self,
        buyer_id: int,
        shipping_address: dict,
        payment_method: str,
        billing_address: dict | None = None,
        customer_notes: str | None = None,
    ) -> Dict[str, Any]:
        """
        Use case: checkout.

        1. validates address, payment method and the cart
        2. re-prices every line from live products (cart totals are ignored)
        3. creates the order with GST split and round-off
        4. reserves stock per line and empties the cart
        Any failure rolls the whole thing back, nothing is reserved partially.
        """
        shipping = validate_address(shipping_address, "shipping_address")
        billing = validate_address(billing_address, "billing_address") if billing_address else dict(shipping)

        if payment_method not in PAYMENT_METHODS:
            raise ValidationError("payment_method", f"must be one of {PAYMENT_METHODS}")

        if customer_notes and len(customer_notes) > 500:
            raise ValidationError("customer_notes", "cannot exceed 500 characters")

        cart = self.carts.get_cart_by_buyer(buyer_id)
        if not cart or not cart.items:
            raise ValidationError("cart", "is empty")

        customer = customer_snapshot(self.profile_client.fetch_profile(buyer_id))

        try:
            lines = []
            breakdowns = []
            for cart_item in cart.items:
                product = self.products.get_product(cart_item.product_id, refresh=True)
                if product is None or not product.is_active:
                    raise NotFound("product", cart_item.product_id)

                validate_quantity(product, cart_item.quantity)

                breakdown = price_product(product, cart_item.quantity)
                rounded = breakdown.rounded()
                breakdowns.append(breakdown)
                lines.append(
                    OrderItemModel(
                        product_id=product.id,
                        product_name=product.name,
                        product_unit=product.unit,
                        hsn_code=product.hsn_code,
                        gst_rate=product.gst_rate,
                        quantity=cart_item.quantity,
                        unit_price=rounded.unit_price,
                        discount_pct=rounded.discount_pct,
                        line_subtotal=rounded.subtotal,
                        line_tax=rounded.tax_amount,
                        line_total=rounded.total,
                    )
                )

            totals = order_totals(
                breakdowns,
                intra_state=is_intra_state(shipping, SELLER_HOME_STATE),
                shipping_charges=SHIPPING_CHARGES,
            )

            now = _now()
            order = OrderModel(
                buyer_id=buyer_id,
                customer_snapshot=customer,
                shipping_address=shipping,
                billing_address=billing,
                customer_notes=customer_notes,
                items=lines,
                subtotal=totals.subtotal,
                total_discount=totals.total_discount,
                cgst=totals.cgst,
                sgst=totals.sgst,
                igst=totals.igst,
                total_gst=totals.total_gst,
                shipping_charges=totals.shipping_charges,
                round_off=totals.round_off,
                grand_total=totals.grand_total,
                status=OrderStatus.PENDING_PAYMENT.value,
                payment_status=PaymentStatus.PENDING.value,
                payment_method=payment_method,
                version=1,
                created_at=now,
            )
            self.repo.add_order(order)

            # numbering needs the id, so it is assigned right after the insert
            order.order_number = _stamp(ORDER_NUMBER_PREFIX, order.id, now)
            self.repo.add_history(
                order,
                OrderStatusHistoryModel(
                    status=OrderStatus.PENDING_PAYMENT.value,
                    note="Order placed",
                    actor_id=buyer_id,
                    created_at=now,
                ),
            )

            #inventory-first: reserve now, deduct on acceptance
            for line in lines:
                self.inventory.reserve(line.product_id, line.quantity, order.id, buyer_id, commit=False)

            self.cart_service.empty_cart(cart)
            self.repo.commit()
        except Exception as e:
            logger.warning(f"Checkout failed for buyer {buyer_id}: {e}")
            self.repo.rollback()
            raise

        self.repo.refresh(order)
        logger.info(f"Order {order.order_number} ({order.id}) created for buyer {buyer_id}, total {order.grand_total}")

        self.notification_service.order_placed(buyer_id, order.id, order.order_number)
        return order_to_dict(order)

    def transition_status(
        self,
        order_id: int,
        actor_id: int,
        target_status: str,
        note: str | None = None,
    ) -> Dict[str, Any]:
        target = parse_status(target_status)
        if target is None:
            raise ValidationError("status", f"unknown status '{target_status}'")

        with self.lock_service.order_lock(order_id):
            order = self._require_order(order_id)

            # paid is reached through payment confirmation only
            if target in PAYMENT_DRIVEN or not is_valid_transition(order.status, target):
                logger.warning(f"Rejected transition {order.status} -> {target.value} on order {order_id}")
                raise InvalidTransition(order_id, order.status, target.value)

            try:
                if target == OrderStatus.CANCELLED:
                    self._cancel(order, actor_id, note or "Order cancelled")
                else:
                    self.apply_transition(order, target, actor_id, note)
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                raise

        return self._after_transition(order)

    def cancel_order(self, order_id: int, actor_id: int, reason: str, role: str = "retailer") -> Dict[str, Any]:
        with self.lock_service.order_lock(order_id):
            order = self._require_order(order_id)

            if order.buyer_id != actor_id and role not in STAFF_ROLES:
                raise Unauthorized(actor_id, f"cancel order {order_id}")

            if not is_valid_transition(order.status, OrderStatus.CANCELLED):
                raise InvalidTransition(order_id, order.status, OrderStatus.CANCELLED.value)

            try:
                self._cancel(order, actor_id, reason or "Order cancelled")
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                raise

        return self._after_transition(order)

    def apply_transition(
        self,
        order: OrderModel,
        target: OrderStatus,
        actor_id: int,
        note: str | None = None,
        changes: dict | None = None,
    ):
        """
        Move the order one step and run the ledger side effect bound to it.
        Does not commit. The version guard makes a concurrent second request
        fail as an invalid transition instead of applying its effects twice.
        """
        current = order.status
        if not is_valid_transition(current, target):
            raise InvalidTransition(order.id, current, target.value)

        now = _now()
        values = {"status": target.value, "version": order.version + 1}
        if target == OrderStatus.ACCEPTED:
            values["accepted_at"] = now
        elif target == OrderStatus.DELIVERED:
            values["delivered_at"] = now
        values.update(changes or {})

        rowcount = self.repo.update_order_version(order.id, order.version, values)
        if rowcount == 0:
            state = self.repo.current_state(order.id)
            raise InvalidTransition(order.id, state.status if state else current, target.value)

        if target == OrderStatus.ACCEPTED:
            # the irreversible step: reservation becomes a real deduction
            for item in order.items:
                self.inventory.deduct(item.product_id, item.quantity, order.id, actor_id, commit=False)

        self.repo.add_history(
            order,
            OrderStatusHistoryModel(status=target.value, note=note, actor_id=actor_id, created_at=now),
        )
        logger.info(f"Order {order.id}: {current} -> {target.value} by {actor_id}")

    #queries

    def get_order(self, order_id: int, actor_id: int, role: str = "retailer") -> Dict[str, Any]:
        order = self._require_order(order_id)
        if order.buyer_id != actor_id and role not in STAFF_ROLES:
            raise Unauthorized(actor_id, f"view order {order_id}")
        return order_to_dict(order)

    def list_buyer_orders(self, buyer_id: int, status: str | None = None, page: int = 1, limit: int = 10):
        if status is not None and parse_status(status) is None:
            raise ValidationError("status", f"unknown status '{status}'")
        orders, total = self.repo.list_by_buyer(buyer_id, status, *self._window(page, limit))
        return self._paginated(orders, total, page, limit)

    def list_pending_payment_orders(self, page: int = 1, limit: int = 10):
        orders, total = self.repo.list_pending_payments(*self._window(page, limit))
        return self._paginated(orders, total, page, limit)

    def get_invoice_data(self, order_id: int) -> Dict[str, Any]:
        order = self._require_order(order_id)
        if not order.invoice_number:
            raise InvalidPaymentState(
                order.id, order.payment_status, order.status, "invoice is issued on payment confirmation"
            )

        buyer = order.customer_snapshot or {}
        return {
            "invoice_number": order.invoice_number,
            "invoice_date": order.invoice_date,
            "order_number": order.order_number,
            "order_date": order.created_at,
            "seller": {
                "name": SELLER_NAME,
                "gstin": SELLER_GSTIN,
                "address": SELLER_ADDRESS,
                "state": SELLER_HOME_STATE,
            },
            "buyer": {
                "name": buyer.get("business_name") or buyer.get("name"),
                "gstin": buyer.get("gstin"),
                "phone": buyer.get("phone"),
                "address": order.billing_address,
            },
            "shipping_address": order.shipping_address,
            "items": [
                {
                    "name": i.product_name,
                    "hsn_code": i.hsn_code,
                    "quantity": i.quantity,
                    "unit": i.product_unit,
                    "rate": i.unit_price,
                    "discount_pct": i.discount_pct,
                    "gst_rate": i.gst_rate,
                    "taxable_value": i.line_subtotal,
                    "gst_amount": i.line_tax,
                    "total": i.line_total,
                }
                for i in order.items
            ],
            "subtotal": order.subtotal,
            "cgst": order.cgst,
            "sgst": order.sgst,
            "igst": order.igst,
            "total_gst": order.total_gst,
            "shipping_charges": order.shipping_charges,
            "round_off": order.round_off,
            "grand_total": order.grand_total,
        }

    #internals

    def _cancel(self, order: OrderModel, actor_id: int, reason: str):
        held = order.status in {s.value for s in RESERVATION_HELD}
        now = _now()
        self.apply_transition(
            order,
            OrderStatus.CANCELLED,
            actor_id,
            reason,
            changes={
                "cancellation_reason": reason,
                "cancelled_at": now,
                "cancelled_by": actor_id,
            },
        )

        if held:
            for item in order.items:
                self.inventory.release(item.product_id, item.quantity, order.id, actor_id, reason, commit=False)
        else:
            # accepted: the reservation was already deducted, physical stock
            # comes back only through add/adjust
            logger.warning(
                f"Order {order.id} cancelled after acceptance, stock is not returned automatically"
            )

    def _after_transition(self, order: OrderModel) -> Dict[str, Any]:
        self.repo.refresh(order)
        self.notification_service.order_status_changed(order.buyer_id, order.id, order.status)
        return order_to_dict(order)

    def _require_order(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id, refresh=True)
        if not order:
            raise NotFound("order", order_id)
        return order

    @staticmethod
    def _window(page: int, limit: int) -> tuple[int, int]:
        if page < 1:
            raise ValidationError("page", "must be at least 1")
        if limit < 1 or limit > 100:
            raise ValidationError("limit", "must be between 1 and 100")
        return (page - 1) * limit, limit

    @staticmethod
    def _paginated(orders, total: int, page: int, limit: int) -> Dict[str, Any]:
        return {
            "orders": [order_to_dict(o) for o in orders],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": (total + limit - 1) // limit,
            },
        }
