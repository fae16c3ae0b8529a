from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any

from sqlalchemy.orm import Session

from agrimart.data.models.cart import CartModel
from agrimart.data.models.cart_item import CartItemModel
from agrimart.domain.errors import ConcurrencyConflict, NotFound, OrderingError, ValidationError
from agrimart.domain.rules import validate_quantity
from agrimart.repos.cart_repo import CartRepo
from agrimart.repos.product_repo import ProductRepo
from agrimart.services.pricing_service import price_product
from agrimart.utils.money import money
from agrimart.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Per-buyer cart.
    commands (add, update, remove, clear) validate against the live product,
    mutate, reprice every line and bump the version.
    queries (get, summary) reprice from live products before answering;
    cached totals are a preview only, checkout never trusts them.
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)

    #queries

    def get_cart(self, buyer_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_buyer(buyer_id)
        if not cart:
            return self._empty_snapshot(buyer_id)

        self._save(cart)
        return self._snapshot(cart)

    def get_cart_summary(self, buyer_id: int) -> Dict[str, Any]:
        snapshot = self.get_cart(buyer_id)
        cart = self.repo.get_cart_by_buyer(buyer_id)

        stock_issues = []
        for item in cart.items if cart else []:
            product = item.product
            if product is None or not product.is_active:
                stock_issues.append(
                    {
                        "product_id": item.product_id,
                        "requested_quantity": item.quantity,
                        "available_stock": 0,
                        "reason": "product is no longer available",
                    }
                )
                continue
            try:
                validate_quantity(product, item.quantity)
            except OrderingError as e:
                stock_issues.append(
                    {
                        "product_id": item.product_id,
                        "requested_quantity": item.quantity,
                        "available_stock": product.stock_available,
                        "reason": str(e),
                    }
                )

        snapshot["stock_issues"] = stock_issues
        snapshot["can_checkout"] = not stock_issues and bool(snapshot["items"])
        return snapshot

    #commands

    def add_item(self, buyer_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        if quantity is None or quantity <= 0:
            raise ValidationError("quantity", "must be greater than 0")

        product = self._require_product(product_id)
        cart = self.repo.get_cart_by_buyer(buyer_id)
        existing_item = self.repo.get_cart_item(cart, product_id) if cart else None

        # same product twice means one line with the summed quantity
        new_quantity = quantity + (existing_item.quantity if existing_item else 0)
        validate_quantity(product, new_quantity)

        try:
            if cart is None:
                cart = self.repo.create_cart(CartModel(buyer_id=buyer_id, version=1))
                logger.info(f"Created cart {cart.id} for buyer {buyer_id}")

            if existing_item:
                logger.info(
                    f"Product {product_id} already in cart {cart.id}, quantity "
                    f"{existing_item.quantity} -> {new_quantity}"
                )
                existing_item.quantity = new_quantity
            else:
                logger.info(f"Adding product {product_id} x{quantity} to cart {cart.id}")
                self.repo.add_cart_item(
                    cart,
                    CartItemModel(
                        product=product,
                        product_id=product_id,
                        quantity=quantity,
                        unit_price_snapshot=product.unit_price,
                    ),
                )

            self._save(cart)
        except Exception:
            self.repo.rollback()
            raise

        return self._snapshot(cart)

    def update_item(self, buyer_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        cart = self._require_cart(buyer_id)
        item = self.repo.get_cart_item(cart, product_id)
        if item is None:
            raise NotFound("cart item", product_id)

        if quantity is None or quantity <= 0:
            return self.remove_item(buyer_id, product_id)

        product = self._require_product(product_id)
        validate_quantity(product, quantity)

        try:
            item.quantity = quantity
            self._save(cart)
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Cart {cart.id}: product {product_id} quantity set to {quantity}")
        return self._snapshot(cart)

    def remove_item(self, buyer_id: int, product_id: int) -> Dict[str, Any]:
        cart = self._require_cart(buyer_id)
        item = self.repo.get_cart_item(cart, product_id)
        if item is None:
            raise NotFound("cart item", product_id)

        try:
            self.repo.delete_cart_item(cart, item)
            self._save(cart)
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Removed product {product_id} from cart {cart.id}")
        return self._snapshot(cart)

    def clear(self, buyer_id: int) -> Dict[str, Any]:
        cart = self._require_cart(buyer_id)
        try:
            self.empty_cart(cart)
            self.repo.commit()
            self.repo.refresh(cart)
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Cleared cart {cart.id}")
        return self._snapshot(cart)

    def empty_cart(self, cart: CartModel):
        """Drop all lines without committing; checkout commits it with the order."""
        for item in list(cart.items):
            self.repo.delete_cart_item(cart, item)
        self._bump_version(
            cart,
            {
                "item_count": 0,
                "subtotal": Decimal("0.00"),
                "estimated_tax": Decimal("0.00"),
                "estimated_total": Decimal("0.00"),
            },
        )

    #internals

    def _require_cart(self, buyer_id: int) -> CartModel:
        cart = self.repo.get_cart_by_buyer(buyer_id)
        if not cart:
            raise NotFound("cart", buyer_id)
        return cart

    def _require_product(self, product_id: int):
        product = self.products.get_product(product_id, refresh=True)
        if product is None or not product.is_active:
            raise NotFound("product", product_id)
        return product

    def _recalculate(self, cart: CartModel) -> Dict[str, Any]:
        subtotal = Decimal("0")
        tax = Decimal("0")
        item_count = 0

        for item in cart.items:
            product = item.product or self.products.get_product(item.product_id)
            if product is None or not product.is_active:
                # stays in the cart, flagged by the summary, excluded from totals
                continue

            breakdown = price_product(product, item.quantity)
            item.applied_price = money(breakdown.unit_price)
            item.discount_pct = money(breakdown.discount_pct)
            item.line_subtotal = money(breakdown.subtotal)

            subtotal += breakdown.subtotal
            tax += breakdown.tax_amount
            item_count += item.quantity

        return {
            "item_count": item_count,
            "subtotal": money(subtotal),
            "estimated_tax": money(tax),
            "estimated_total": money(subtotal + tax),
        }

    def _save(self, cart: CartModel):
        self._bump_version(cart, self._recalculate(cart))
        self.repo.commit()
        self.repo.refresh(cart)

    def _bump_version(self, cart: CartModel, totals: Dict[str, Any]):
        # optimistic locking: update ... set version = n+1 where id = ? and version = n
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                **totals,
                "version": cart.version + 1,
                "updated_at": datetime.now(timezone.utc),
            },
        )
        if rowcount == 0:
            raise ConcurrencyConflict("cart", cart.id)

    def _snapshot(self, cart: CartModel) -> Dict[str, Any]:
        return {
            "cart_id": cart.id,
            "buyer_id": cart.buyer_id,
            "version": cart.version,
            "items": [
                {
                    "product_id": i.product_id,
                    "product_name": i.product.name if i.product else None,
                    "unit": i.product.unit if i.product else None,
                    "quantity": i.quantity,
                    "unit_price_snapshot": i.unit_price_snapshot,
                    "applied_price": i.applied_price,
                    "discount_pct": i.discount_pct,
                    "line_subtotal": i.line_subtotal,
                }
                for i in cart.items
            ],
            "item_count": cart.item_count,
            "subtotal": cart.subtotal,
            "estimated_tax": cart.estimated_tax,
            "estimated_total": cart.estimated_total,
        }

    @staticmethod
    def _empty_snapshot(buyer_id: int) -> Dict[str, Any]:
        return {
            "cart_id": None,
            "buyer_id": buyer_id,
            "version": 0,
            "items": [],
            "item_count": 0,
            "subtotal": Decimal("0.00"),
            "estimated_tax": Decimal("0.00"),
            "estimated_total": Decimal("0.00"),
        }
