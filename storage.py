"""
Repository layer.

The business logic talks to a ``Storage``; which implementation backs it is a
configuration choice (STORAGE_BACKEND), not something decided at runtime by
probing the database.
"""

import logging
import re
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

import config
from database import create_document, retry_reads, serialize_doc, to_object_id
from errors import InvalidRequestError
from schemas import (
    Cart,
    CartItem,
    Order,
    OrderStatus,
    Product,
    ProductIn,
    Review,
    User,
    Wishlist,
    utcnow,
)

logger = logging.getLogger(__name__)

PRODUCT_FLAGS = ("featured", "new_arrival", "on_sale")
COLLECTIONS = ["user", "product", "cart", "wishlist", "order", "review"]


def _to_doc(model) -> Dict[str, Any]:
    computed = set(type(model).model_computed_fields)
    return model.model_dump(exclude={"id", *computed})


class Storage(ABC):
    name = "abstract"

    # Users
    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, user: User) -> User:
        """Insert a user. Raises InvalidRequestError if the email is already registered."""

    # Products
    @abstractmethod
    def list_products(self, category: Optional[str] = None, sub_category: Optional[str] = None) -> List[Product]: ...

    @abstractmethod
    def search_products(self, query: str) -> List[Product]: ...

    @abstractmethod
    def get_product(self, product_id: str) -> Optional[Product]: ...

    @abstractmethod
    def products_with_flag(self, flag: str) -> List[Product]: ...

    @abstractmethod
    def create_product(self, product: ProductIn) -> Product: ...

    @abstractmethod
    def update_product(self, product_id: str, fields: Dict[str, Any]) -> Optional[Product]: ...

    @abstractmethod
    def delete_product(self, product_id: str) -> bool: ...

    # Carts
    @abstractmethod
    def get_cart(self, user_id: str) -> Optional[Cart]: ...

    @abstractmethod
    def save_cart(self, user_id: str, items: List[CartItem]) -> Cart: ...

    # Wishlists
    @abstractmethod
    def get_wishlist(self, user_id: str) -> Optional[Wishlist]: ...

    @abstractmethod
    def save_wishlist(self, user_id: str, product_ids: List[str]) -> Wishlist: ...

    # Orders
    @abstractmethod
    def list_orders(self, user_id: str) -> List[Order]: ...

    @abstractmethod
    def get_order(self, order_id: str) -> Optional[Order]: ...

    @abstractmethod
    def create_order(self, order: Order) -> Order: ...

    @abstractmethod
    def update_order_status(self, order_id: str, status: OrderStatus) -> Optional[Order]: ...

    @abstractmethod
    def delete_order(self, order_id: str) -> bool: ...

    # Reviews
    @abstractmethod
    def list_reviews(self, product_id: str) -> List[Review]: ...

    @abstractmethod
    def create_review(self, review: Review) -> Review: ...

    @abstractmethod
    def collection_names(self) -> List[str]: ...


def _newest_first(records):
    # reversed() first so that equal timestamps keep newest-inserted first
    return sorted(reversed(list(records)), key=lambda r: r.created_at, reverse=True)


class MemoryStorage(Storage):
    """Dictionaries keyed by id. Used in tests and when no database is configured."""

    name = "memory"

    def __init__(self):
        self._lock = threading.RLock()
        self.users: Dict[str, User] = {}
        self.products: Dict[str, Product] = {}
        self.carts: Dict[str, Cart] = {}
        self.wishlists: Dict[str, Wishlist] = {}
        self.orders: Dict[str, Order] = {}
        self.reviews: Dict[str, Review] = {}

    @staticmethod
    def _new_id() -> str:
        return str(ObjectId())

    @staticmethod
    def _copy(model):
        return model.model_copy(deep=True) if model is not None else None

    def get_user(self, user_id):
        with self._lock:
            return self._copy(self.users.get(user_id))

    def get_user_by_email(self, email):
        with self._lock:
            return self._copy(next((u for u in self.users.values() if u.email == email), None))

    def create_user(self, user):
        with self._lock:
            if any(u.email == user.email for u in self.users.values()):
                raise InvalidRequestError("Email already registered")
            stored = user.model_copy(update={"id": self._new_id()}, deep=True)
            self.users[stored.id] = stored
            return self._copy(stored)

    def list_products(self, category=None, sub_category=None):
        with self._lock:
            products = list(self.products.values())
        if category:
            products = [p for p in products if (p.category or "").lower() == category.lower()]
        if sub_category:
            products = [p for p in products if (p.sub_category or "").lower() == sub_category.lower()]
        return [self._copy(p) for p in products]

    def search_products(self, query):
        needle = query.lower()
        with self._lock:
            return [
                self._copy(p) for p in self.products.values()
                if needle in p.title.lower() or needle in (p.description or "").lower()
            ]

    def get_product(self, product_id):
        with self._lock:
            return self._copy(self.products.get(product_id))

    def products_with_flag(self, flag):
        with self._lock:
            return [self._copy(p) for p in self.products.values() if getattr(p, flag)]

    def create_product(self, product):
        data = product.model_dump(exclude={"id", *type(product).model_computed_fields})
        stored = Product(**data)
        stored.id = self._new_id()
        with self._lock:
            self.products[stored.id] = stored
            return self._copy(stored)

    def update_product(self, product_id, fields):
        with self._lock:
            current = self.products.get(product_id)
            if current is None:
                return None
            updated = Product(**{**_to_doc(current), **fields})
            updated.id = product_id
            self.products[product_id] = updated
            return self._copy(updated)

    def delete_product(self, product_id):
        with self._lock:
            return self.products.pop(product_id, None) is not None

    def get_cart(self, user_id):
        with self._lock:
            return self._copy(self.carts.get(user_id))

    def save_cart(self, user_id, items):
        with self._lock:
            existing = self.carts.get(user_id)
            cart = Cart(
                id=existing.id if existing else self._new_id(),
                user_id=user_id,
                items=[i.model_copy() for i in items],
                updated_at=utcnow(),
            )
            self.carts[user_id] = cart
            return self._copy(cart)

    def get_wishlist(self, user_id):
        with self._lock:
            return self._copy(self.wishlists.get(user_id))

    def save_wishlist(self, user_id, product_ids):
        with self._lock:
            existing = self.wishlists.get(user_id)
            wishlist = Wishlist(
                id=existing.id if existing else self._new_id(),
                user_id=user_id,
                product_ids=list(product_ids),
                updated_at=utcnow(),
            )
            self.wishlists[user_id] = wishlist
            return self._copy(wishlist)

    def list_orders(self, user_id):
        with self._lock:
            mine = [o for o in self.orders.values() if o.user_id == user_id]
        return [self._copy(o) for o in _newest_first(mine)]

    def get_order(self, order_id):
        with self._lock:
            return self._copy(self.orders.get(order_id))

    def create_order(self, order):
        with self._lock:
            stored = order.model_copy(update={"id": self._new_id()}, deep=True)
            self.orders[stored.id] = stored
            return self._copy(stored)

    def update_order_status(self, order_id, status):
        with self._lock:
            order = self.orders.get(order_id)
            if order is None:
                return None
            updated = order.model_copy(update={"status": status, "updated_at": utcnow()}, deep=True)
            self.orders[order_id] = updated
            return self._copy(updated)

    def delete_order(self, order_id):
        with self._lock:
            return self.orders.pop(order_id, None) is not None

    def list_reviews(self, product_id):
        with self._lock:
            matching = [r for r in self.reviews.values() if r.product_id == product_id]
        return [self._copy(r) for r in _newest_first(matching)]

    def create_review(self, review):
        with self._lock:
            stored = review.model_copy(update={"id": self._new_id()}, deep=True)
            self.reviews[stored.id] = stored
            return self._copy(stored)

    def collection_names(self):
        return list(COLLECTIONS)


class MongoStorage(Storage):
    """pymongo-backed repository. Reads are retried on transient network errors."""

    name = "mongo"

    def __init__(self, database):
        self.db = database
        self.db["user"].create_index([("email", ASCENDING)], unique=True)

    def _find_by_id(self, collection: str, raw_id: str) -> Optional[Dict[str, Any]]:
        oid = to_object_id(raw_id)
        if oid is None:
            return None
        return self.db[collection].find_one({"_id": oid})

    @staticmethod
    def _exact(value: str) -> Dict[str, Any]:
        return {"$regex": f"^{re.escape(value)}$", "$options": "i"}

    # Users
    @retry_reads
    def get_user(self, user_id):
        doc = self._find_by_id("user", user_id)
        return User(**serialize_doc(doc)) if doc else None

    @retry_reads
    def get_user_by_email(self, email):
        doc = self.db["user"].find_one({"email": email})
        return User(**serialize_doc(doc)) if doc else None

    def create_user(self, user):
        try:
            user_id = create_document(self.db, "user", _to_doc(user))
        except DuplicateKeyError:
            raise InvalidRequestError("Email already registered")
        return user.model_copy(update={"id": user_id})

    # Products
    @retry_reads
    def list_products(self, category=None, sub_category=None):
        query: Dict[str, Any] = {}
        if category:
            query["category"] = self._exact(category)
        if sub_category:
            query["sub_category"] = self._exact(sub_category)
        return [Product(**serialize_doc(d)) for d in self.db["product"].find(query)]

    @retry_reads
    def search_products(self, query):
        pattern = {"$regex": re.escape(query), "$options": "i"}
        cursor = self.db["product"].find({"$or": [{"title": pattern}, {"description": pattern}]})
        return [Product(**serialize_doc(d)) for d in cursor]

    @retry_reads
    def get_product(self, product_id):
        doc = self._find_by_id("product", product_id)
        return Product(**serialize_doc(doc)) if doc else None

    @retry_reads
    def products_with_flag(self, flag):
        return [Product(**serialize_doc(d)) for d in self.db["product"].find({flag: True})]

    def create_product(self, product):
        stored = Product(**_to_doc(product))
        product_id = create_document(self.db, "product", _to_doc(stored))
        stored.id = product_id
        return stored

    def update_product(self, product_id, fields):
        oid = to_object_id(product_id)
        if oid is None:
            return None
        doc = self.db["product"].find_one_and_update(
            {"_id": oid},
            {"$set": {**fields, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return Product(**serialize_doc(doc)) if doc else None

    def delete_product(self, product_id):
        oid = to_object_id(product_id)
        if oid is None:
            return False
        return self.db["product"].delete_one({"_id": oid}).deleted_count > 0

    # Carts
    @retry_reads
    def get_cart(self, user_id):
        doc = self.db["cart"].find_one({"user_id": user_id})
        return Cart(**serialize_doc(doc)) if doc else None

    def save_cart(self, user_id, items):
        now = utcnow()
        doc = self.db["cart"].find_one_and_update(
            {"user_id": user_id},
            {
                "$set": {"items": [i.model_dump() for i in items], "updated_at": now},
                "$setOnInsert": {"user_id": user_id, "created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return Cart(**serialize_doc(doc))

    # Wishlists
    @retry_reads
    def get_wishlist(self, user_id):
        doc = self.db["wishlist"].find_one({"user_id": user_id})
        return Wishlist(**serialize_doc(doc)) if doc else None

    def save_wishlist(self, user_id, product_ids):
        now = utcnow()
        doc = self.db["wishlist"].find_one_and_update(
            {"user_id": user_id},
            {
                "$set": {"product_ids": list(product_ids), "updated_at": now},
                "$setOnInsert": {"user_id": user_id, "created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return Wishlist(**serialize_doc(doc))

    # Orders
    @retry_reads
    def list_orders(self, user_id):
        cursor = self.db["order"].find({"user_id": user_id}).sort(
            [("created_at", DESCENDING), ("_id", DESCENDING)]
        )
        return [Order(**serialize_doc(d)) for d in cursor]

    @retry_reads
    def get_order(self, order_id):
        doc = self._find_by_id("order", order_id)
        return Order(**serialize_doc(doc)) if doc else None

    def create_order(self, order):
        doc = _to_doc(order)
        doc["status"] = order.status.value
        order_id = create_document(self.db, "order", doc)
        return order.model_copy(update={"id": order_id})

    def update_order_status(self, order_id, status):
        oid = to_object_id(order_id)
        if oid is None:
            return None
        doc = self.db["order"].find_one_and_update(
            {"_id": oid},
            {"$set": {"status": status.value, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return Order(**serialize_doc(doc)) if doc else None

    def delete_order(self, order_id):
        oid = to_object_id(order_id)
        if oid is None:
            return False
        return self.db["order"].delete_one({"_id": oid}).deleted_count > 0

    # Reviews
    @retry_reads
    def list_reviews(self, product_id):
        cursor = self.db["review"].find({"product_id": product_id}).sort(
            [("created_at", DESCENDING), ("_id", DESCENDING)]
        )
        return [Review(**serialize_doc(d)) for d in cursor]

    def create_review(self, review):
        review_id = create_document(self.db, "review", _to_doc(review))
        return review.model_copy(update={"id": review_id})

    @retry_reads
    def collection_names(self):
        return self.db.list_collection_names()


def build_storage() -> Storage:
    backend = config.STORAGE_BACKEND
    if backend == "memory":
        logger.info("Using in-memory storage")
        return MemoryStorage()
    if backend == "mongo":
        from database import db
        if db is None:
            raise RuntimeError("STORAGE_BACKEND=mongo requires DATABASE_URL")
        logger.info("Using MongoDB storage (%s)", config.DATABASE_NAME)
        return MongoStorage(db)
    raise RuntimeError(f"Unknown STORAGE_BACKEND: {backend!r}")
