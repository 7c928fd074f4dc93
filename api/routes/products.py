"""
api/routes/products.py -- Product catalog endpoints.

Routes:
  GET    /api/products                      -- list with filters (public, optional auth)
  GET    /api/products/categories           -- distinct categories (public)
  GET    /api/products/category/{category}  -- products in one category (public)
  GET    /api/products/stats                -- catalog statistics (requires auth)
  GET    /api/products/my                   -- caller's own products (requires auth)
  GET    /api/products/{product_id}         -- one product, with canModify (public, optional auth)
  POST   /api/products                      -- create (requires auth)
  PUT    /api/products/{product_id}         -- update (owner or admin)
  DELETE /api/products/{product_id}         -- delete (owner or admin)

Static paths are registered before /{product_id} so they are not captured
as ids. Ownership comes from the stored product (created_by), not the URL,
so these routes use check_ownership_or_admin() directly.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import (
    CategoryListResponse,
    CategoryProductsResponse,
    ProductCreate,
    ProductListResponse,
    ProductOut,
    ProductResponse,
    ProductStats,
    ProductStatsResponse,
    ProductUpdate,
)
from auth.dependencies import authenticate_token, check_ownership_or_admin, optional_auth
from auth.errors import NotFound
from auth.models import User
from catalog.models import Product
from catalog.store import ProductStore

router = APIRouter()


def _store(request: Request) -> ProductStore:
    return request.app.state.product_store


def _get_or_404(store: ProductStore, product_id: str) -> Product:
    product = store.find_by_id(product_id)
    if product is None:
        raise NotFound("Product not found")
    return product


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    request: Request,
    category: Optional[str] = None,
    in_stock: Optional[bool] = Query(default=None, alias="inStock"),
    min_price: Optional[float] = Query(default=None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(default=None, alias="maxPrice", ge=0),
    created_by: Optional[str] = Query(default=None, alias="createdBy"),
    current_user: Optional[User] = Depends(optional_auth),
) -> ProductListResponse:
    products = _store(request).find_all(
        category=category,
        in_stock=in_stock,
        min_price=min_price,
        max_price=max_price,
        created_by=created_by,
    )
    return ProductListResponse(
        count=len(products),
        authenticated=current_user is not None,
        products=[ProductOut.from_product(p) for p in products],
    )


@router.get("/products/categories", response_model=CategoryListResponse)
async def list_categories(request: Request) -> CategoryListResponse:
    categories = _store(request).categories()
    return CategoryListResponse(count=len(categories), categories=categories)


@router.get("/products/category/{category}", response_model=CategoryProductsResponse)
async def products_by_category(request: Request, category: str) -> CategoryProductsResponse:
    products = _store(request).find_by_category(category)
    return CategoryProductsResponse(
        category=category,
        count=len(products),
        products=[ProductOut.from_product(p) for p in products],
    )


# ---------------------------------------------------------------------------
# Authenticated
# ---------------------------------------------------------------------------


@router.get("/products/stats", response_model=ProductStatsResponse)
async def product_stats(request: Request, current_user: User = Depends(authenticate_token)) -> ProductStatsResponse:
    return ProductStatsResponse(stats=ProductStats(**_store(request).stats(current_user)))


@router.get("/products/my", response_model=ProductListResponse)
async def my_products(request: Request, current_user: User = Depends(authenticate_token)) -> ProductListResponse:
    products = _store(request).find_by_creator(current_user.id)
    return ProductListResponse(
        count=len(products),
        authenticated=True,
        products=[ProductOut.from_product(p) for p in products],
    )


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(
    request: Request,
    product_id: str,
    current_user: Optional[User] = Depends(optional_auth),
) -> ProductResponse:
    """Product detail. canModify is only true for the creator or an admin."""
    store = _store(request)
    product = _get_or_404(store, product_id)
    can_modify = store.can_modify(product_id, current_user) if current_user else False
    return ProductResponse(product=ProductOut.from_product(product), can_modify=can_modify)


@router.post("/products", response_model=ProductResponse, status_code=201)
async def create_product(
    request: Request,
    body: ProductCreate,
    current_user: User = Depends(authenticate_token),
) -> ProductResponse:
    product = _store(request).create(body.model_dump(), user_id=current_user.id)
    return ProductResponse(message="Product created successfully", product=ProductOut.from_product(product))


@router.put("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    request: Request,
    product_id: str,
    body: ProductUpdate,
    current_user: User = Depends(authenticate_token),
) -> ProductResponse:
    store = _store(request)
    product = _get_or_404(store, product_id)
    check_ownership_or_admin(current_user, product.created_by)
    updated = store.update(product_id, body.model_dump(exclude_unset=True))
    return ProductResponse(message="Product updated successfully", product=ProductOut.from_product(updated))


@router.delete("/products/{product_id}", response_model=ProductResponse)
async def delete_product(
    request: Request,
    product_id: str,
    current_user: User = Depends(authenticate_token),
) -> ProductResponse:
    store = _store(request)
    product = _get_or_404(store, product_id)
    check_ownership_or_admin(current_user, product.created_by)
    store.delete(product_id)
    return ProductResponse(message="Product deleted successfully", product=ProductOut.from_product(product))
