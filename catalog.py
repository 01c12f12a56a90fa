from typing import List, Optional

from errors import NotFoundError
from schemas import Product, ProductIn, ProductUpdate
from storage import Storage


class Catalog:
    """Read side of the product collection, plus the admin writes."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def list(self, category: Optional[str] = None, sub_category: Optional[str] = None) -> List[Product]:
        return self.storage.list_products(category=category or None, sub_category=sub_category or None)

    def search(self, query: str) -> List[Product]:
        return self.storage.search_products(query)

    def find(self, product_id: str) -> Optional[Product]:
        return self.storage.get_product(product_id)

    def get_by_id(self, product_id: str) -> Product:
        product = self.storage.get_product(product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    def list_featured(self) -> List[Product]:
        return self.storage.products_with_flag("featured")

    def list_new_arrivals(self) -> List[Product]:
        return self.storage.products_with_flag("new_arrival")

    def list_on_sale(self) -> List[Product]:
        return self.storage.products_with_flag("on_sale")

    def create(self, data: ProductIn) -> Product:
        return self.storage.create_product(data)

    def update(self, product_id: str, data: ProductUpdate) -> Product:
        # rating/review_count are not part of ProductUpdate
        fields = data.model_dump(exclude_unset=True)
        if not fields:
            return self.get_by_id(product_id)
        product = self.storage.update_product(product_id, fields)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    def delete(self, product_id: str) -> None:
        if not self.storage.delete_product(product_id):
            raise NotFoundError("Product not found")
