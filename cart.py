"""
Cart and wishlist aggregation.

Each user owns at most one cart and one wishlist, materialized on the first
mutation. Reads of a user without one return an unsaved empty value.
All mutations for a user are serialized through ``user_locks`` so that a
read-modify-write such as ``add_item`` cannot lose a concurrent update.
"""

import logging
from typing import Dict, List, Optional, Tuple

from catalog import Catalog
from locks import KeyedLocks
from schemas import Cart, CartItem, Wishlist
from storage import Storage

logger = logging.getLogger(__name__)


def merge_items(items: List[CartItem]) -> List[CartItem]:
    """Collapse lines sharing (product_id, size, color), summing quantities. Order is kept."""
    merged: Dict[Tuple, CartItem] = {}
    for item in items:
        key = item.line_key()
        if key in merged:
            merged[key].quantity += item.quantity
        else:
            merged[key] = item.model_copy()
    return list(merged.values())


class CartService:
    def __init__(self, storage: Storage, catalog: Catalog, user_locks: Optional[KeyedLocks] = None):
        self.storage = storage
        self.catalog = catalog
        self.user_locks = user_locks or KeyedLocks()

    def get_cart(self, user_id: str) -> Cart:
        cart = self.storage.get_cart(user_id)
        if cart is None:
            return Cart(user_id=user_id, items=[])
        return cart

    def set_items(self, user_id: str, items: List[CartItem]) -> Cart:
        with self.user_locks.hold(user_id):
            return self.storage.save_cart(user_id, merge_items(items))

    def add_item(self, user_id: str, item: CartItem) -> Cart:
        # ensure product exists
        self.catalog.get_by_id(item.product_id)
        with self.user_locks.hold(user_id):
            items = list(self.get_cart(user_id).items)
            for it in items:
                if it.line_key() == item.line_key():
                    it.quantity += item.quantity
                    break
            else:
                items.append(item.model_copy())
            cart = self.storage.save_cart(user_id, items)
        logger.debug("User %s added %d x %s to cart", user_id, item.quantity, item.product_id)
        return cart

    def clear(self, user_id: str) -> Cart:
        with self.user_locks.hold(user_id):
            return self.storage.save_cart(user_id, [])


class WishlistService:
    def __init__(self, storage: Storage, catalog: Catalog, user_locks: Optional[KeyedLocks] = None):
        self.storage = storage
        self.catalog = catalog
        self.user_locks = user_locks or KeyedLocks()

    def get_wishlist(self, user_id: str) -> Wishlist:
        wishlist = self.storage.get_wishlist(user_id)
        if wishlist is None:
            return Wishlist(user_id=user_id, product_ids=[])
        return wishlist

    def set_product_ids(self, user_id: str, product_ids: List[str]) -> Wishlist:
        unique = list(dict.fromkeys(product_ids))
        with self.user_locks.hold(user_id):
            return self.storage.save_wishlist(user_id, unique)

    def toggle(self, user_id: str, product_id: str) -> Wishlist:
        with self.user_locks.hold(user_id):
            product_ids = list(self.get_wishlist(user_id).product_ids)
            if product_id in product_ids:
                product_ids.remove(product_id)
            else:
                self.catalog.get_by_id(product_id)
                product_ids.append(product_id)
            return self.storage.save_wishlist(user_id, product_ids)
