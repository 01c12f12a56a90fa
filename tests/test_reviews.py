import pytest

from catalog import Catalog
from errors import NotFoundError
from reviews import ReviewAggregator
from schemas import ReviewIn
from tests.conftest import make_product

USER = "64b000000000000000000001"


@pytest.fixture
def reviews(storage):
    return ReviewAggregator(storage, Catalog(storage))


def test_review_count_tracks_reviews(storage, reviews):
    tee = make_product(storage)
    cap = make_product(storage, title="Cap")
    for rating in (5, 4, 4):
        reviews.add(USER, ReviewIn(product_id=tee.id, rating=rating, comment="nice"))
    reviews.add(USER, ReviewIn(product_id=cap.id, rating=2))

    for product in (tee, cap):
        stored = storage.get_product(product.id)
        assert stored.review_count == len(reviews.list_for_product(product.id))
    assert storage.get_product(tee.id).review_count == 3


def test_rating_is_exact_mean_and_rounds_half_up_for_display(storage, reviews):
    tee = make_product(storage)
    reviews.add(USER, ReviewIn(product_id=tee.id, rating=4))
    reviews.add(USER, ReviewIn(product_id=tee.id, rating=5))
    stored = storage.get_product(tee.id)
    assert stored.rating == 4.5
    assert stored.rating_display == 5

    reviews.add(USER, ReviewIn(product_id=tee.id, rating=4))
    stored = storage.get_product(tee.id)
    assert stored.rating == pytest.approx(13 / 3)
    assert stored.rating_display == 4


def test_duplicate_reviews_by_one_user_are_allowed(storage, reviews):
    tee = make_product(storage)
    reviews.add(USER, ReviewIn(product_id=tee.id, rating=3))
    reviews.add(USER, ReviewIn(product_id=tee.id, rating=3))
    assert storage.get_product(tee.id).review_count == 2


def test_reviews_listed_newest_first(storage, reviews):
    tee = make_product(storage)
    first = reviews.add(USER, ReviewIn(product_id=tee.id, rating=3, comment="first"))
    second = reviews.add(USER, ReviewIn(product_id=tee.id, rating=5, comment="second"))
    assert [r.id for r in reviews.list_for_product(tee.id)] == [second.id, first.id]


def test_review_for_unknown_product(reviews):
    with pytest.raises(NotFoundError):
        reviews.add(USER, ReviewIn(product_id="ffffffffffffffffffffffff", rating=5))
    assert reviews.list_for_product("ffffffffffffffffffffffff") == []
