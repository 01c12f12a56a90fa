import logging

from schemas import ProductIn
from storage import Storage

logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS = [
    {
        "title": "Soft Linen Blend Blazer",
        "description": "A breathable linen-blend blazer with a relaxed silhouette. Features notched lapels, "
                       "front button closure, and flap pockets. Perfect for both casual and semi-formal occasions.",
        "price": 12900,
        "original_price": 18900,
        "category": "women",
        "sub_category": "blazers",
        "images": [
            "https://images.unsplash.com/photo-1594633312681-425c7b97ccd1?auto=format&fit=crop&w=800&h=1000&q=80",
            "https://images.unsplash.com/photo-1591369822096-ffd140ec948f?auto=format&fit=crop&w=800&h=1000&q=80",
        ],
        "sizes": ["XS", "S", "M", "L", "XL"],
        "colors": [
            {"name": "Beige", "code": "#E8E4DD"},
            {"name": "Blue", "code": "#BFD7ED"},
            {"name": "Green", "code": "#C2E0C9"},
        ],
        "inventory": 50,
        "featured": True,
        "new_arrival": False,
        "on_sale": True,
    },
    {
        "title": "Linen Blend Dress",
        "description": "Perfect for summer occasions. Lightweight linen blend with a flattering silhouette.",
        "price": 8900,
        "category": "women",
        "sub_category": "dresses",
        "images": [
            "https://images.unsplash.com/photo-1548126032-079a0fb0099d?auto=format&fit=crop&w=500&h=650&q=80",
        ],
        "sizes": ["XS", "S", "M", "L"],
        "colors": [
            {"name": "Beige", "code": "#E8E4DD"},
            {"name": "Blue", "code": "#BFD7ED"},
        ],
        "inventory": 30,
        "featured": True,
        "new_arrival": True,
        "on_sale": False,
    },
    {
        "title": "Classic Beige Trousers",
        "description": "High-waisted design with a modern cut. Made from premium cotton blend.",
        "price": 7500,
        "category": "women",
        "sub_category": "pants",
        "images": [
            "https://images.unsplash.com/photo-1509631179647-0177331693ae?auto=format&fit=crop&w=500&h=650&q=80",
        ],
        "sizes": ["XS", "S", "M", "L", "XL"],
        "colors": [
            {"name": "Beige", "code": "#E8E4DD"},
            {"name": "Black", "code": "#333333"},
        ],
        "inventory": 25,
    },
    {
        "title": "Structured Handbag",
        "description": "Vegan leather finish with gold-tone hardware. Includes detachable shoulder strap.",
        "price": 11900,
        "category": "accessories",
        "sub_category": "bags",
        "images": [
            "https://images.unsplash.com/photo-1571513722275-4b41940f54b8?auto=format&fit=crop&w=500&h=650&q=80",
        ],
        "sizes": ["One Size"],
        "colors": [
            {"name": "Beige", "code": "#E8E4DD"},
            {"name": "Black", "code": "#333333"},
        ],
        "inventory": 15,
        "new_arrival": True,
    },
    {
        "title": "Oversized Cotton Shirt",
        "description": "Relaxed silhouette with dropped shoulders. Made from 100% organic cotton.",
        "price": 5900,
        "original_price": 7500,
        "category": "women",
        "sub_category": "shirts",
        "images": [
            "https://images.unsplash.com/photo-1591047139829-d91aecb6caea?auto=format&fit=crop&w=500&h=650&q=80",
        ],
        "sizes": ["S", "M", "L", "XL"],
        "colors": [
            {"name": "White", "code": "#FFFFFF"},
            {"name": "Blue", "code": "#BFD7ED"},
        ],
        "inventory": 40,
        "on_sale": True,
    },
    {
        "title": "Slim Fit Jeans",
        "description": "Medium wash denim with slight stretch for comfort. Classic five-pocket design.",
        "price": 6900,
        "category": "men",
        "sub_category": "jeans",
        "images": [
            "https://images.unsplash.com/photo-1542272604-787c3835535d?auto=format&fit=crop&w=500&h=650&q=80",
        ],
        "sizes": ["30", "32", "34", "36"],
        "colors": [
            {"name": "Medium Blue", "code": "#4A75BA"},
            {"name": "Dark Blue", "code": "#162955"},
        ],
        "inventory": 35,
        "featured": True,
    },
]


def seed_products(storage: Storage) -> int:
    """Insert the sample catalog if the product collection is empty."""
    if storage.list_products():
        return 0
    for data in SAMPLE_PRODUCTS:
        storage.create_product(ProductIn(**data))
    logger.info("Seeded %d sample products", len(SAMPLE_PRODUCTS))
    return len(SAMPLE_PRODUCTS)
