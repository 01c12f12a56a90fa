"""
Trend analysis and personalized recommendations.

Both features ask the AI provider first and fall back to a deterministic local
computation over the catalog when it is unavailable or replies with something
unusable. The result always says which path produced it.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from catalog import Catalog
from errors import UpstreamServiceError
from schemas import Product, ProductRecommendation, TrendAnalysis, TrendRecommendations
from storage import Storage

logger = logging.getLogger(__name__)

TOP_N = 5
STYLE_KEYWORDS = ["casual", "formal", "vintage", "modern", "minimalist", "sustainable", "athleisure"]

GENERIC_CATEGORIES = ["Casual Wear", "Athleisure", "Minimalist Basics", "Sustainable Fashion", "Summer Essentials"]
GENERIC_COLORS = ["Natural White", "Sage Green", "Navy Blue", "Earth Tones", "Soft Pastels"]
GENERIC_STYLES = ["Minimalist", "Sustainable", "Versatile", "Comfort-focused", "Timeless"]
GENERIC_INSIGHTS = (
    "Our current product collection shows a strong preference for versatile and sustainable fashion. "
    "Customers are prioritizing comfort while seeking pieces that can transition between different settings, "
    "with a focus on quality and longevity."
)
GENERIC_RECOMMENDATIONS = TrendRecommendations(
    for_users="Look for versatile pieces that can be mixed and matched across your wardrobe. Consider investing "
              "in quality basics with sustainable materials that will last across multiple seasons.",
    for_inventory="Expand the selection of sustainable and versatile pieces. Focus on quality basics in neutral "
                  "colors that can be layered and styled in multiple ways.",
)

TREND_SYSTEM = "You are a fashion trend analysis expert for an e-commerce platform."
RECOMMEND_SYSTEM = "You are a personalized fashion recommendation engine."

# (flag, how many, score, reason), highest priority first
FALLBACK_PICKS = [
    ("featured", 2, 92, "This is one of our featured products that matches your style preferences."),
    ("new_arrival", 2, 88, "Just arrived in our collection and aligns with your previous browsing history."),
    ("on_sale", 1, 85, "Currently on sale and similar to items you've shown interest in."),
]


@dataclass
class Advice:
    source: str  # "ai" or "fallback"
    data: Any

    @classmethod
    def ok(cls, data):
        return cls("ai", data)

    @classmethod
    def fallback(cls, data):
        return cls("fallback", data)


def top_counts(values: Sequence[str], n: int = TOP_N) -> List[str]:
    """Most frequent values, ties kept in first-seen order."""
    counts: Dict[str, int] = {}
    for v in values:
        counts[v] = counts.get(v, 0) + 1
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [name for name, _ in ranked[:n]]


def local_trends(products: List[Product]) -> TrendAnalysis:
    categories: List[str] = []
    colors: List[str] = []
    styles: List[str] = []
    for p in products:
        if p.category:
            categories.append(p.category)
        if p.sub_category:
            categories.append(p.sub_category)
        colors.extend(c.name for c in p.colors)
        description = (p.description or "").lower()
        styles.extend(k for k in STYLE_KEYWORDS if k in description)

    return TrendAnalysis(
        trending_categories=top_counts(categories) or list(GENERIC_CATEGORIES),
        trending_colors=top_counts(colors) or list(GENERIC_COLORS),
        trending_styles=top_counts(styles) or list(GENERIC_STYLES),
        consumer_insights=GENERIC_INSIGHTS,
        recommendations=GENERIC_RECOMMENDATIONS.model_copy(),
    )


def _score_and_reason(p: Product):
    """Score and reason of the highest-priority flag the product carries."""
    for flag, _, score, reason in FALLBACK_PICKS:
        if getattr(p, flag):
            return score, reason
    return FALLBACK_PICKS[-1][2:]


def fallback_recommendations(products: List[Product]) -> List[ProductRecommendation]:
    picks: List[ProductRecommendation] = []
    seen = set()
    for flag, limit, _, _ in FALLBACK_PICKS:
        taken = 0
        for p in products:
            if taken == limit:
                break
            if getattr(p, flag) and p.id not in seen:
                seen.add(p.id)
                score, reason = _score_and_reason(p)
                picks.append(ProductRecommendation(product_id=p.id, title=p.title, reason=reason, score=score))
                taken += 1
    return picks


def _brief(p: Product) -> Dict[str, Any]:
    return {
        "id": p.id,
        "title": p.title,
        "category": p.category,
        "subCategory": p.sub_category,
    }


class TrendAdvisor:
    def __init__(self, storage: Storage, catalog: Catalog, client):
        self.storage = storage
        self.catalog = catalog
        self.client = client

    def analyze_trends(self) -> Advice:
        products = self.catalog.list()
        catalog_data = [
            {
                **_brief(p),
                "colors": [c.name for c in p.colors],
                "featured": p.featured,
                "newArrival": p.new_arrival,
                "onSale": p.on_sale,
                "inventory": p.inventory,
            }
            for p in products
        ]
        prompt = f"""
Analyze the following product catalog data and identify current fashion trends:

{json.dumps(catalog_data)}

Based on the catalog data, please provide:
1. Top 3 trending product categories
2. Top 3 trending colors
3. Top 3 trending styles or themes
4. Brief consumer insights (2-3 sentences)
5. Recommendations for both users and inventory management

Format your response as JSON with the following structure:
{{
  "trendingCategories": ["category1", "category2", "category3"],
  "trendingColors": ["color1", "color2", "color3"],
  "trendingStyles": ["style1", "style2", "style3"],
  "consumerInsights": "Brief insights about current consumer behavior and preferences",
  "recommendations": {{
    "forUsers": "Recommendation for shoppers",
    "forInventory": "Recommendation for inventory management"
  }}
}}
"""
        try:
            analysis = TrendAnalysis.model_validate(self.client.complete_json(TREND_SYSTEM, prompt))
        except (UpstreamServiceError, ValidationError) as e:
            logger.warning("Trend analysis falling back to catalog tallies: %s", e)
            return Advice.fallback(local_trends(products))

        analysis.trending_categories = analysis.trending_categories[:TOP_N]
        analysis.trending_colors = analysis.trending_colors[:TOP_N]
        analysis.trending_styles = analysis.trending_styles[:TOP_N]
        return Advice.ok(analysis)

    def recommend(self, user_name: str, purchase_history: List[Product],
                  view_history: List[Product]) -> Advice:
        products = self.catalog.list()
        known = {p.id: p for p in products}
        profile = {
            "previousPurchases": [_brief(p) for p in purchase_history],
            "viewHistory": [_brief(p) for p in view_history],
            "username": user_name or "user",
        }
        available = [
            {
                **_brief(p),
                "description": p.description,
                "price": p.price,
                "colors": [c.name for c in p.colors],
                "featured": p.featured,
                "newArrival": p.new_arrival,
                "onSale": p.on_sale,
            }
            for p in products
        ]
        prompt = f"""
Based on the user's profile and previous interactions, recommend 5 products from our catalog.

User Profile:
{json.dumps(profile)}

Available Products:
{json.dumps(available)}

For each recommended product, provide the product id, the product title, a one-sentence reason,
and a recommendation score from 1-100 based on how well it matches the user's preferences.

Format your response as JSON with the following structure:
{{"recommendations": [{{"productId": "<id>", "title": "Product Name", "reason": "Brief reason", "score": 85}}]}}

Only include products from the available catalog.
"""
        try:
            reply = self.client.complete_json(RECOMMEND_SYSTEM, prompt)
            entries = reply.get("recommendations") if isinstance(reply, dict) else reply
            if not isinstance(entries, list):
                raise UpstreamServiceError("AI reply has no recommendations list")
            picks = [ProductRecommendation.model_validate(e) for e in entries]
            picks = [r for r in picks if r.product_id in known][:TOP_N]
            if not picks:
                raise UpstreamServiceError("AI reply recommended no known products")
        except (UpstreamServiceError, ValidationError) as e:
            logger.warning("Recommendations falling back to flagged products: %s", e)
            return Advice.fallback(fallback_recommendations(products))
        return Advice.ok(picks)

    def recommend_for_user(self, user_id: str, user_name: str, viewed_ids: Optional[List[str]] = None) -> Advice:
        """Build purchase history from the user's orders, view history from ``viewed_ids``."""
        purchased_ids: List[str] = []
        for order in self.storage.list_orders(user_id):
            purchased_ids.extend(i.product_id for i in order.items)
        purchases = self._resolve(purchased_ids)
        views = self._resolve(viewed_ids or [])
        return self.recommend(user_name, purchases, views)

    def _resolve(self, product_ids: List[str]) -> List[Product]:
        resolved = []
        for pid in dict.fromkeys(product_ids):
            product = self.catalog.find(pid)
            if product is not None:
                resolved.append(product)
        return resolved
