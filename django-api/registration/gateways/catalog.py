"""Product catalog read from Django settings."""

from typing import Any, Mapping

from django.conf import settings

from registration.domain import Money
from registration.gateways.interfaces import Product, ProductCatalog


class SettingsProductCatalog(ProductCatalog):
    """Catalog backed by REGISTRATION["PRODUCTS"].

    Each entry maps a product id to name, price, duration_days and the
    optional location and meeting_link.
    """

    def __init__(self, products: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        if products is None:
            products = settings.REGISTRATION.get("PRODUCTS", {})
        self._products = {
            product_id: Product(
                id=product_id,
                name=entry["name"],
                price=Money.of(entry["price"]),
                duration_days=int(entry.get("duration_days", 1)),
                location=entry.get("location", ""),
                meeting_link=entry.get("meeting_link", ""),
            )
            for product_id, entry in products.items()
        }

    def get_product(self, product_id: str) -> Product | None:
        return self._products.get(product_id)
