# agrimart/repos/cart_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from agrimart.data.models.cart import CartModel
from agrimart.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart_by_buyer(self, buyer_id: int) -> CartModel | None:
        # version is bumped with bulk UPDATEs, so always re-read the row
        return self.db.execute(
            select(CartModel)
            .where(CartModel.buyer_id == buyer_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.flush()
        return cart

    def get_cart_item(self, cart: CartModel, product_id: int) -> CartItemModel | None:
        for item in cart.items:
            if item.product_id == product_id:
                return item
        return None

    def add_cart_item(self, cart: CartModel, item: CartItemModel) -> CartItemModel:
        cart.items.append(item)
        return item

    def delete_cart_item(self, cart: CartModel, item: CartItemModel):
        # delete-orphan cascade removes the row on flush
        cart.items.remove(item)

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        stmt = (
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def refresh(self, cart: CartModel):
        self.db.refresh(cart)

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
