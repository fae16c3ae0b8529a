#import all models so SQLAlchemy registers them in Base.metadata

from agrimart.data.models.product import ProductModel, ProductTierModel
from agrimart.data.models.inventory_log import InventoryLogModel
from agrimart.data.models.cart import CartModel
from agrimart.data.models.cart_item import CartItemModel
from agrimart.data.models.order import OrderModel
from agrimart.data.models.order_item import OrderItemModel
from agrimart.data.models.order_status_history import OrderStatusHistoryModel

__all__ = [
    "ProductModel",
    "ProductTierModel",
    "InventoryLogModel",
    "CartModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "OrderStatusHistoryModel",
]
