"""
Order ledger.

Orders are created from the caller's cart at checkout. Each line is a frozen
snapshot of the product (price, title, first image) so later catalog edits
never change a past order.
"""

import logging
from typing import Dict, List, Set

from cart import CartService
from catalog import Catalog
from errors import InvalidRequestError, NotFoundError, UnauthorizedError
from schemas import Address, Order, OrderItem, OrderStatus, PublicUser
from storage import Storage

logger = logging.getLogger(__name__)

FREE_SHIPPING_THRESHOLD = 10000  # cents
SHIPPING_FEE = 599  # cents

ALLOWED_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.pending: {OrderStatus.processing, OrderStatus.cancelled},
    OrderStatus.processing: {OrderStatus.shipped, OrderStatus.cancelled},
    OrderStatus.shipped: {OrderStatus.delivered},
    OrderStatus.delivered: set(),
    OrderStatus.cancelled: set(),
}


def shipping_fee_for(subtotal: int) -> int:
    return 0 if subtotal >= FREE_SHIPPING_THRESHOLD else SHIPPING_FEE


class OrderLedger:
    def __init__(self, storage: Storage, catalog: Catalog, carts: CartService):
        self.storage = storage
        self.catalog = catalog
        self.carts = carts

    def place(self, user_id: str, address: Address) -> Order:
        # Same lock as cart mutations: nothing can slip into the cart between
        # the snapshot and the clear.
        with self.carts.user_locks.hold(user_id):
            cart = self.carts.get_cart(user_id)
            if not cart.items:
                raise InvalidRequestError("Cart is empty")

            items: List[OrderItem] = []
            for line in cart.items:
                product = self.catalog.find(line.product_id)
                if product is None:
                    raise NotFoundError(f"Product {line.product_id} not found")
                items.append(OrderItem(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    size=line.size,
                    color=line.color,
                    price=product.price,
                    title=product.title,
                    image=product.images[0] if product.images else None,
                ))

            subtotal = sum(i.price * i.quantity for i in items)
            fee = shipping_fee_for(subtotal)
            order = self.storage.create_order(Order(
                user_id=user_id,
                items=items,
                subtotal=subtotal,
                shipping_fee=fee,
                total_amount=subtotal + fee,
                shipping_address=address,
                status=OrderStatus.processing,
            ))
            try:
                self.carts.clear(user_id)
            except Exception:
                logger.exception("Clearing cart failed after order %s; rolling back", order.id)
                self.storage.delete_order(order.id)
                raise

        logger.info("Order %s placed by user %s: %d items, total %d", order.id, user_id, len(items),
                    order.total_amount)
        return order

    def list_for_user(self, user_id: str) -> List[Order]:
        return self.storage.list_orders(user_id)

    def get_by_id(self, order_id: str) -> Order:
        order = self.storage.get_order(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def get_for_user(self, order_id: str, user: PublicUser) -> Order:
        order = self.get_by_id(order_id)
        if order.user_id != user.id and user.role != "admin":
            raise UnauthorizedError("Not authorized to view this order")
        return order

    def update_status(self, order_id: str, status: OrderStatus) -> Order:
        order = self.get_by_id(order_id)
        if status not in ALLOWED_TRANSITIONS[order.status]:
            raise InvalidRequestError(f"Cannot move order from {order.status.value} to {status.value}")
        updated = self.storage.update_order_status(order_id, status)
        if updated is None:
            raise NotFoundError("Order not found")
        return updated
