"""
catalog/models.py -- Domain dataclass for the product catalog.

Pure data container. Ownership checks, filtering and statistics live in
catalog/store.py.

created_by is the id of the user who created the product, or "system" for
seeded demo rows. It is the owning-user id the ownership predicate compares
against.
"""

import uuid
from dataclasses import dataclass, field

from auth.models import now_iso


@dataclass
class Product:
    name: str
    description: str
    price: float
    category: str
    created_by: str
    in_stock: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "category": self.category,
            "in_stock": self.in_stock,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
