import logging
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from auth import create_access_token, get_current_admin, get_current_user, hash_password, public_user, verify_password
from cart import CartService, WishlistService
from catalog import Catalog
from errors import InvalidRequestError, StoreError
from llm import ChatClient
from locks import KeyedLocks
from orders import OrderLedger
from reviews import ReviewAggregator
from schemas import (
    Cart,
    CartItem,
    CartItemsIn,
    LoginInput,
    Order,
    PlaceOrderIn,
    Product,
    ProductIn,
    ProductRecommendation,
    ProductUpdate,
    PublicUser,
    RegisterInput,
    Review,
    ReviewIn,
    StatusChange,
    TokenResponse,
    TrendAnalysis,
    TryOnIn,
    TryOnProduct,
    TryOnResult,
    User,
    Wishlist,
    WishlistIn,
    WishlistToggle,
)
from seed import seed_products
from storage import Storage, build_storage
from trends import TrendAdvisor

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logger = logging.getLogger("trendhive")

router = APIRouter()


def state(request: Request):
    return request.app.state


# Routes
@router.get("/")
def read_root():
    return {"message": "TrendHive API"}


@router.get("/test")
def test_database(request: Request):
    storage: Storage = request.app.state.storage
    response = {
        "backend": "✅ Running",
        "storage": storage.name,
        "database": "❌ Not Available",
        "collections": [],
    }
    try:
        response["collections"] = storage.collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Auth
@router.post("/api/auth/register", response_model=TokenResponse, status_code=201)
def register(payload: RegisterInput, s=Depends(state)):
    email = payload.email.lower()
    if s.storage.get_user_by_email(email):
        raise InvalidRequestError("Email already registered")
    user = s.storage.create_user(User(
        name=payload.name,
        email=email,
        password_hash=hash_password(payload.password),
        role="admin" if email in config.ADMIN_EMAILS else "user",
    ))
    token = create_access_token({"sub": user.id})
    return TokenResponse(access_token=token, user=public_user(user))


@router.post("/api/auth/login", response_model=TokenResponse)
def login(payload: LoginInput, s=Depends(state)):
    user = s.storage.get_user_by_email(payload.email.lower())
    if not user or not verify_password(payload.password, user.password_hash):
        raise InvalidRequestError("Invalid email or password")
    token = create_access_token({"sub": user.id})
    return TokenResponse(access_token=token, user=public_user(user))


@router.get("/api/auth/me", response_model=PublicUser)
def me(current_user: PublicUser = Depends(get_current_user)):
    return current_user


# Products
@router.get("/api/products", response_model=List[Product])
def list_products(category: Optional[str] = None, sub_category: Optional[str] = Query(None, alias="subCategory"),
                  search: Optional[str] = None, s=Depends(state)):
    if search:
        return s.catalog.search(search)
    return s.catalog.list(category=category, sub_category=sub_category)


@router.get("/api/products/featured", response_model=List[Product])
def featured_products(s=Depends(state)):
    return s.catalog.list_featured()


@router.get("/api/products/new", response_model=List[Product])
def new_arrivals(s=Depends(state)):
    return s.catalog.list_new_arrivals()


@router.get("/api/products/sale", response_model=List[Product])
def sale_products(s=Depends(state)):
    return s.catalog.list_on_sale()


@router.get("/api/products/{product_id}", response_model=Product)
def get_product(product_id: str, s=Depends(state)):
    return s.catalog.get_by_id(product_id)


@router.post("/api/products", response_model=Product, status_code=201)
def create_product(data: ProductIn, s=Depends(state), admin: PublicUser = Depends(get_current_admin)):
    product = s.catalog.create(data)
    logger.info("Admin %s created product %s", admin.id, product.id)
    return product


@router.put("/api/products/{product_id}", response_model=Product)
def update_product(product_id: str, data: ProductUpdate, s=Depends(state),
                   admin: PublicUser = Depends(get_current_admin)):
    return s.catalog.update(product_id, data)


@router.delete("/api/products/{product_id}")
def delete_product(product_id: str, s=Depends(state), admin: PublicUser = Depends(get_current_admin)):
    s.catalog.delete(product_id)
    return {"ok": True}


# Reviews
@router.get("/api/products/{product_id}/reviews", response_model=List[Review])
def product_reviews(product_id: str, s=Depends(state)):
    return s.reviews.list_for_product(product_id)


@router.post("/api/reviews", response_model=Review, status_code=201)
def create_review(data: ReviewIn, s=Depends(state), current_user: PublicUser = Depends(get_current_user)):
    return s.reviews.add(current_user.id, data)


# Cart
@router.get("/api/cart", response_model=Cart)
def get_cart(s=Depends(state), current_user: PublicUser = Depends(get_current_user)):
    return s.carts.get_cart(current_user.id)


@router.post("/api/cart", response_model=Cart)
def set_cart(payload: CartItemsIn, s=Depends(state), current_user: PublicUser = Depends(get_current_user)):
    return s.carts.set_items(current_user.id, payload.items)


@router.post("/api/cart/add", response_model=Cart)
def add_to_cart(item: CartItem, s=Depends(state), current_user: PublicUser = Depends(get_current_user)):
    return s.carts.add_item(current_user.id, item)


@router.delete("/api/cart")
def clear_cart(s=Depends(state), current_user: PublicUser = Depends(get_current_user)):
    s.carts.clear(current_user.id)
    return {"message": "Cart cleared"}


# Wishlist
@router.get("/api/wishlist", response_model=Wishlist)
def get_wishlist(s=Depends(state), current_user: PublicUser = Depends(get_current_user)):
    return s.wishlists.get_wishlist(current_user.id)


@router.post("/api/wishlist", response_model=Wishlist)
def set_wishlist(payload: WishlistIn, s=Depends(state), current_user: PublicUser = Depends(get_current_user)):
    return s.wishlists.set_product_ids(current_user.id, payload.product_ids)


@router.post("/api/wishlist/toggle", response_model=Wishlist)
def toggle_wishlist(payload: WishlistToggle, s=Depends(state), current_user: PublicUser = Depends(get_current_user)):
    return s.wishlists.toggle(current_user.id, payload.product_id)


# Orders
@router.get("/api/orders", response_model=List[Order])
def list_orders(s=Depends(state), current_user: PublicUser = Depends(get_current_user)):
    return s.orders.list_for_user(current_user.id)


@router.get("/api/orders/{order_id}", response_model=Order)
def get_order(order_id: str, s=Depends(state), current_user: PublicUser = Depends(get_current_user)):
    return s.orders.get_for_user(order_id, current_user)


@router.post("/api/orders", response_model=Order, status_code=201)
def place_order(payload: PlaceOrderIn, s=Depends(state), current_user: PublicUser = Depends(get_current_user)):
    return s.orders.place(current_user.id, payload.shipping_address)


@router.put("/api/orders/{order_id}/status", response_model=Order)
def change_order_status(order_id: str, payload: StatusChange, s=Depends(state),
                        admin: PublicUser = Depends(get_current_admin)):
    order = s.orders.update_status(order_id, payload.status)
    logger.info("Admin %s moved order %s to %s", admin.id, order_id, payload.status.value)
    return order


# Trend analysis
@router.get("/api/trends", response_model=TrendAnalysis)
def trend_analysis(response: Response, s=Depends(state)):
    advice = s.advisor.analyze_trends()
    response.headers["X-Advice-Source"] = advice.source
    return advice.data


@router.get("/api/recommendations/personalized", response_model=List[ProductRecommendation])
def personalized_recommendations(response: Response, viewed: List[str] = Query(default=[]), s=Depends(state),
                                 current_user: PublicUser = Depends(get_current_user)):
    advice = s.advisor.recommend_for_user(current_user.id, current_user.name, viewed)
    response.headers["X-Advice-Source"] = advice.source
    return advice.data


# Virtual try-on. The image is echoed back until an overlay pipeline exists.
@router.post("/api/virtual-try-on", response_model=TryOnResult)
def virtual_try_on(payload: TryOnIn, s=Depends(state)):
    if not payload.product_id:
        raise InvalidRequestError("Product ID is required")
    product = s.catalog.get_by_id(payload.product_id)
    if not payload.image_base64:
        raise InvalidRequestError("Image data is required for virtual try-on")
    return TryOnResult(
        product_id=product.id,
        image_url=payload.image_base64,
        try_on_id=str(int(time.time() * 1000)),
        product=TryOnProduct(
            title=product.title,
            image=product.images[0] if product.images else "",
            category=product.category,
        ),
    )


def create_app(storage: Optional[Storage] = None, ai_client=None, seed: Optional[bool] = None) -> FastAPI:
    storage = storage or build_storage()
    should_seed = config.SEED_CATALOG if seed is None else seed

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if should_seed:
            seed_products(storage)
        yield

    app = FastAPI(title="TrendHive API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    catalog = Catalog(storage)
    user_locks = KeyedLocks()
    carts = CartService(storage, catalog, user_locks)

    app.state.storage = storage
    app.state.catalog = catalog
    app.state.carts = carts
    app.state.wishlists = WishlistService(storage, catalog, user_locks)
    app.state.orders = OrderLedger(storage, catalog, carts)
    app.state.reviews = ReviewAggregator(storage, catalog)
    app.state.advisor = TrendAdvisor(storage, catalog, ai_client or ChatClient())

    @app.exception_handler(StoreError)
    def store_error_handler(request: Request, exc: StoreError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(Exception)
    def unexpected_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.middleware("http")
    async def log_api_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            duration = (time.perf_counter() - start) * 1000
            logger.info("%s %s %s in %dms", request.method, request.url.path, response.status_code, duration)
        return response

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
