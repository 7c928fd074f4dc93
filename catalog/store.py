"""
catalog/store.py -- In-memory repository for the product catalog.

Pattern: Repository, same shape as auth/store.py. ProductStore is built once
in the api/main.py lifespan and shared through app.state.product_store.

The catalog exists mostly to put the authorization layer to work:
  - listing and detail views are public but vary with optional_auth
  - create requires authentication
  - update and delete require ownership (created_by) or the admin role

Usage:
    store = ProductStore()
    product = store.create({"name": "Lamp", "description": "Desk lamp", "price": 20.0,
                            "category": "Home"}, user_id=user.id)
    store.can_modify(product.id, user)   # True for the creator and for admins
"""

import logging
from collections import Counter
from typing import Any, Optional

from auth.models import User, now_iso
from catalog.models import Product

logger = logging.getLogger("authgate.catalog")

_PATCHABLE = {"name", "description", "price", "category", "in_stock"}

_DEMO_PRODUCTS: list[dict[str, Any]] = [
    {
        "name": "Laptop",
        "description": "High-performance laptop for professionals",
        "price": 999.99,
        "category": "Electronics",
        "in_stock": True,
    },
    {
        "name": "Smartphone",
        "description": "Latest smartphone with advanced features",
        "price": 699.99,
        "category": "Electronics",
        "in_stock": True,
    },
    {
        "name": "Coffee Maker",
        "description": "Automatic coffee maker for home use",
        "price": 149.99,
        "category": "Home & Kitchen",
        "in_stock": False,
    },
    {
        "name": "Running Shoes",
        "description": "Comfortable running shoes for athletes",
        "price": 89.99,
        "category": "Sports",
        "in_stock": True,
    },
]


class ProductStore:
    def __init__(self) -> None:
        self._products: dict[str, Product] = {}

    def seed_demo_data(self) -> None:
        """Load the sample products (owned by "system")."""
        for data in _DEMO_PRODUCTS:
            self.create(data, user_id="system")
        logger.info("Seeded %d demo products", len(_DEMO_PRODUCTS))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_all(
        self,
        category: Optional[str] = None,
        in_stock: Optional[bool] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        created_by: Optional[str] = None,
    ) -> list[Product]:
        """Return products matching every filter given.

        category is a case-insensitive substring match; the others are exact
        or inclusive bounds.
        """
        products = list(self._products.values())
        if category:
            needle = category.lower()
            products = [p for p in products if needle in p.category.lower()]
        if in_stock is not None:
            products = [p for p in products if p.in_stock == in_stock]
        if min_price is not None:
            products = [p for p in products if p.price >= min_price]
        if max_price is not None:
            products = [p for p in products if p.price <= max_price]
        if created_by:
            products = [p for p in products if p.created_by == created_by]
        return products

    def find_by_id(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def find_by_category(self, category: str) -> list[Product]:
        """Exact category match, ignoring case."""
        wanted = category.lower()
        return [p for p in self._products.values() if p.category.lower() == wanted]

    def find_by_creator(self, user_id: str) -> list[Product]:
        return [p for p in self._products.values() if p.created_by == user_id]

    def categories(self) -> list[str]:
        """Distinct categories in first-seen order."""
        return list(dict.fromkeys(p.category for p in self._products.values()))

    def count(self) -> int:
        return len(self._products)

    def can_modify(self, product_id: str, user: User) -> bool:
        product = self._products.get(product_id)
        if product is None:
            return False
        return user.is_admin or product.created_by == user.id

    def stats(self, user: User) -> dict[str, Any]:
        products = self.find_all()
        mine = self.find_by_creator(user.id)
        per_category = Counter(p.category for p in products)
        return {
            "total_products": len(products),
            "available_products": sum(1 for p in products if p.in_stock),
            "my_products": len(mine),
            "my_available_products": sum(1 for p in mine if p.in_stock),
            "categories_count": len(per_category),
            "categories": self.categories(),
            "top_categories": [{"category": c, "count": n} for c, n in per_category.most_common()],
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, data: dict[str, Any], user_id: str) -> Product:
        product = Product(
            name=data["name"],
            description=data["description"],
            price=data["price"],
            category=data["category"],
            in_stock=data.get("in_stock", True),
            created_by=user_id,
        )
        self._products[product.id] = product
        return product

    def update(self, product_id: str, patch: dict[str, Any]) -> Optional[Product]:
        product = self._products.get(product_id)
        if product is None:
            return None
        for key, value in patch.items():
            if key in _PATCHABLE and value is not None:
                setattr(product, key, value)
        product.updated_at = now_iso()
        return product

    def delete(self, product_id: str) -> Optional[Product]:
        return self._products.pop(product_id, None)
