"""API routes."""

from fastapi import APIRouter

from indigo_api.routes import cart, courses, game, inventory, items, market, products, search, shop, tasks, uploads, user

api_router = APIRouter(prefix="/api")

# Storefront
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(cart.router, prefix="/cart", tags=["cart"])
api_router.include_router(user.router, prefix="/user", tags=["user"])
api_router.include_router(search.router, prefix="/search", tags=["search"])

# Teaching
api_router.include_router(courses.router, prefix="/courses", tags=["courses"])

# Mini-game
api_router.include_router(game.router, prefix="/game", tags=["game"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(shop.router, prefix="/shop", tags=["shop"])
api_router.include_router(shop.listings_router, prefix="/listings", tags=["shop"])
api_router.include_router(market.router, prefix="/market", tags=["market"])
api_router.include_router(market.transactions_router, prefix="/transactions", tags=["market"])
api_router.include_router(items.router, prefix="/items", tags=["items"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])

# Files
api_router.include_router(uploads.router, prefix="/upload", tags=["upload"])
api_router.include_router(uploads.files_router, prefix="/files", tags=["upload"])
