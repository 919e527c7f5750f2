# shopmate/models/product.py

"""Product data models for inter-module data flow."""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class Product:
    """Represents a single product listing from any source."""

    title: str
    price: float
    store: str = ""
    link: str = ""
    id: str = ""
    rating: float = 0.0
    reviews: int = 0
    discount: float = 0.0
    image: str = ""
    currency: str = "INR"
    source: str = ""

    def is_redirect_link(self, redirect_domain: str) -> bool:
        """True when the link goes through the search API's redirect domain."""
        return redirect_domain in self.link

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the camelCase shape consumed by presentation layers."""
        return {
            "id": self.id,
            "title": self.title,
            "price": self.price,
            "currency": self.currency,
            "store": self.store,
            "link": self.link,
            "rating": self.rating,
            "reviews": self.reviews,
            "discount": self.discount,
            "image": self.image,
            "source": self.source,
        }


@dataclass(frozen=True)
class ScoredProduct(Product):
    """A Product with the score fields attached during ranking.

    ``relevance_score`` and ``composite_score`` stay ``None`` when the
    external relevance stage did not produce them.
    """

    is_accessory: bool = False
    value_score: float = 0.0
    relevance_score: float | None = None
    irrelevance_penalty: float = 0.0
    composite_score: float | None = None

    @classmethod
    def from_product(
        cls, product: Product, **scores: Any,
    ) -> "ScoredProduct":
        """Build a ScoredProduct from a Product (or re-score a ScoredProduct)."""
        fields = asdict(product)
        fields.update(scores)
        return cls(**fields)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "isAccessory": self.is_accessory,
                "valueScore": self.value_score,
                "relevanceScore": self.relevance_score,
                "irrelevancePenalty": self.irrelevance_penalty,
                "compositeScore": self.composite_score,
            }
        )
        return data
