import pytest

from cart import CartService
from catalog import Catalog
from errors import UpstreamServiceError
from orders import OrderLedger
from schemas import Address, CartItem
from storage import MemoryStorage
from tests.conftest import ADDRESS, FakeChatClient, make_product
from trends import GENERIC_CATEGORIES, GENERIC_COLORS, GENERIC_STYLES, TrendAdvisor, top_counts

USER = "64b000000000000000000001"

AI_TRENDS = {
    "trendingCategories": ["blazers", "dresses", "bags", "jeans", "shirts", "pants"],
    "trendingColors": ["Beige", "Blue", "Black"],
    "trendingStyles": ["Relaxed", "Tailored", "Linen"],
    "consumerInsights": "Shoppers want breathable fabrics.",
    "recommendations": {"forUsers": "Layer linen.", "forInventory": "Stock more beige."},
}


def advisor_for(storage, client):
    return TrendAdvisor(storage, Catalog(storage), client)


def test_top_counts_breaks_ties_by_first_seen():
    assert top_counts(["b", "a", "c", "a", "d", "e", "f"]) == ["a", "b", "c", "d", "e"]


def test_trend_fallback_tallies_catalog(seeded):
    advice = advisor_for(seeded, FakeChatClient()).analyze_trends()
    assert advice.source == "fallback"
    data = advice.data
    assert data.trending_categories == ["women", "blazers", "dresses", "pants", "accessories"]
    assert data.trending_colors == ["Beige", "Blue", "Black", "Green", "White"]
    assert data.trending_styles == ["casual", "formal", "modern"]
    assert data.consumer_insights
    assert data.recommendations.for_users


def test_trend_fallback_on_empty_catalog_uses_generic_labels(storage):
    data = advisor_for(storage, FakeChatClient()).analyze_trends().data
    assert data.trending_categories == GENERIC_CATEGORIES
    assert data.trending_colors == GENERIC_COLORS
    assert data.trending_styles == GENERIC_STYLES
    for values in (data.trending_categories, data.trending_colors, data.trending_styles):
        assert len(values) == 5


def test_trend_ai_reply_is_used_and_trimmed(seeded):
    client = FakeChatClient(reply=AI_TRENDS)
    advice = advisor_for(seeded, client).analyze_trends()
    assert advice.source == "ai"
    assert advice.data.trending_categories == AI_TRENDS["trendingCategories"][:5]
    assert advice.data.recommendations.for_inventory == "Stock more beige."
    system, prompt = client.calls[0]
    assert "Slim Fit Jeans" in prompt


@pytest.mark.parametrize("reply", [
    {"trendingCategories": ["a"]},
    ["not", "an", "object"],
    {**AI_TRENDS, "recommendations": "none"},
])
def test_trend_malformed_reply_falls_back(seeded, reply):
    advice = advisor_for(seeded, FakeChatClient(reply=reply)).analyze_trends()
    assert advice.source == "fallback"
    assert advice.data.trending_categories[0] == "women"


def test_recommendation_fallback_picks_flagged_products(seeded):
    advice = advisor_for(seeded, FakeChatClient()).recommend("Ann", [], [])
    assert advice.source == "fallback"
    picks = [(r.title, r.score) for r in advice.data]
    # dress is both featured and new, it only appears once
    assert picks == [
        ("Soft Linen Blend Blazer", 92),
        ("Linen Blend Dress", 92),
        ("Structured Handbag", 88),
        ("Oversized Cotton Shirt", 85),
    ]
    assert advice.data[2].reason.startswith("Just arrived")
    assert len({r.product_id for r in advice.data}) == len(advice.data)


def test_recommendation_fallback_scores_by_strongest_flag(storage):
    make_product(storage, title="A", featured=True)
    make_product(storage, title="B", featured=True)
    make_product(storage, title="C", featured=True, new_arrival=True)
    advice = advisor_for(storage, FakeChatClient()).recommend("Ann", [], [])
    # C is picked by the new-arrival pass but still scores as featured
    assert [(r.title, r.score) for r in advice.data] == [("A", 92), ("B", 92), ("C", 92)]
    assert advice.data[2].reason.startswith("This is one of our featured")


def test_recommendation_fallback_on_empty_catalog(storage):
    assert advisor_for(storage, FakeChatClient()).recommend("Ann", [], []).data == []


@pytest.mark.parametrize("wrap", [True, False])
def test_recommendation_ai_reply_keeps_known_products(seeded, wrap):
    jeans = Catalog(seeded).list(sub_category="jeans")[0]
    entries = [
        {"productId": jeans.id, "title": "Slim Fit Jeans", "reason": "Matches denim purchases.", "score": 90},
        {"productId": "ffffffffffffffffffffffff", "title": "Ghost", "reason": "Invented.", "score": 99},
    ]
    reply = {"recommendations": entries} if wrap else entries
    advice = advisor_for(seeded, FakeChatClient(reply=reply)).recommend("Ann", [], [])
    assert advice.source == "ai"
    assert [r.product_id for r in advice.data] == [jeans.id]


def test_recommendation_ai_reply_without_known_products_falls_back(seeded):
    reply = {"recommendations": [{"productId": "nope", "title": "x", "reason": "y", "score": 10}]}
    advice = advisor_for(seeded, FakeChatClient(reply=reply)).recommend("Ann", [], [])
    assert advice.source == "fallback"


def test_quota_error_is_recovered(seeded):
    client = FakeChatClient(error=UpstreamServiceError("quota exceeded"))
    assert advisor_for(seeded, client).analyze_trends().source == "fallback"
    assert advisor_for(seeded, client).recommend("Ann", [], []).source == "fallback"


def test_recommend_for_user_sends_purchase_and_view_history(seeded):
    catalog = Catalog(seeded)
    carts = CartService(seeded, catalog)
    jeans = catalog.list(sub_category="jeans")[0]
    bag = catalog.list(sub_category="bags")[0]
    carts.add_item(USER, CartItem(product_id=jeans.id))
    OrderLedger(seeded, catalog, carts).place(USER, Address(**ADDRESS))

    client = FakeChatClient()
    advice = TrendAdvisor(seeded, catalog, client).recommend_for_user(USER, "Ann", [bag.id, "bogus"])
    assert advice.source == "fallback"
    _, prompt = client.calls[0]
    profile = prompt.split("User Profile:")[1].split("Available Products:")[0]
    assert '"previousPurchases": [{"id": "%s"' % jeans.id in profile
    assert '"viewHistory": [{"id": "%s"' % bag.id in profile
    assert "bogus" not in profile


def test_advisor_never_raises_for_empty_storage():
    advisor = advisor_for(MemoryStorage(), FakeChatClient())
    assert advisor.recommend_for_user(USER, "Ann").data == []
