from typing import List

from catalog import Catalog
from locks import KeyedLocks
from schemas import Review, ReviewIn
from storage import Storage


class ReviewAggregator:
    """Appends reviews and keeps the parent product's rating/review_count in step.

    The aggregate is recomputed from every review of the product on each insert,
    which is O(n) in that product's review count. ``rating`` holds the exact mean;
    rounding happens only for display.
    """

    def __init__(self, storage: Storage, catalog: Catalog):
        self.storage = storage
        self.catalog = catalog
        self.product_locks = KeyedLocks()

    def add(self, user_id: str, data: ReviewIn) -> Review:
        self.catalog.get_by_id(data.product_id)
        with self.product_locks.hold(data.product_id):
            review = self.storage.create_review(Review(
                user_id=user_id,
                product_id=data.product_id,
                rating=data.rating,
                comment=data.comment,
            ))
            reviews = self.storage.list_reviews(data.product_id)
            average = sum(r.rating for r in reviews) / len(reviews)
            self.storage.update_product(data.product_id, {
                "rating": average,
                "review_count": len(reviews),
            })
        return review

    def list_for_product(self, product_id: str) -> List[Review]:
        return self.storage.list_reviews(product_id)
