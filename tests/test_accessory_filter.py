# tests/test_accessory_filter.py

"""Tests for accessory detection and the fallback accessory filter."""

import unittest

from shopmate.config.settings import Settings
from shopmate.filters.accessory_filter import AccessoryFilter
from shopmate.models.product import Product


def _p(title: str, price: float) -> Product:
    """Create a minimal Product."""
    return Product(title=title, price=price, link="https://x.com")


class TestAccessoryFilter(unittest.TestCase):
    """AccessoryFilter unit tests."""

    def setUp(self) -> None:
        self.filter = AccessoryFilter(
            Settings.ACCESSORY_KEYWORDS,
            Settings.ACCESSORY_PRICE_THRESHOLD,
        )

    def test_is_accessory_case_insensitive(self) -> None:
        """Keyword matching ignores case."""
        self.assertTrue(self.filter.is_accessory("iPhone 15 CASE"))
        self.assertTrue(self.filter.is_accessory("USB-C Cable 1m"))
        self.assertFalse(self.filter.is_accessory("iPhone 15 128GB"))

    def test_primary_query_drops_cheap_accessory(self) -> None:
        """A cheap accessory is removed for a primary-product query."""
        products = [
            _p("Gaming Mouse Pad XL", 5.0),
            _p("Logitech Wireless Mouse", 25.0),
        ]
        kept, removed = self.filter.apply("wireless mouse", products)
        self.assertEqual([p.title for p in kept], ["Logitech Wireless Mouse"])
        self.assertEqual(removed, 1)

    def test_expensive_accessory_kept(self) -> None:
        """Accessories priced at or above the threshold survive."""
        products = [_p("Premium Leather Case", 1000.0)]
        kept, removed = self.filter.apply("iphone 15", products)
        self.assertEqual(len(kept), 1)
        self.assertEqual(removed, 0)

    def test_accessory_query_not_filtered(self) -> None:
        """When the query targets an accessory nothing is removed."""
        products = [_p("iPhone 15 Silicone Case", 299.0)]
        kept, removed = self.filter.apply("iphone 15 case", products)
        self.assertEqual(kept, products)
        self.assertEqual(removed, 0)

    def test_order_preserved(self) -> None:
        """Survivors keep their input order."""
        products = [_p("Phone B", 300.0), _p("Charger", 50.0), _p("Phone A", 200.0)]
        kept, _removed = self.filter.apply("phone", products)
        self.assertEqual([p.title for p in kept], ["Phone B", "Phone A"])


if __name__ == "__main__":
    unittest.main()
