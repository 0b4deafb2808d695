from __future__ import annotations

import unittest

from quote_model import BillingCycle, QuoteError
from service_catalog import SERVICE_CATALOG, UnknownServiceError, get_service


class TestServiceCatalog(unittest.TestCase):
    def test_catalog_prices(self) -> None:
        prices = {s.id: s.price for s in SERVICE_CATALOG}
        self.assertEqual(prices, {"web": 4500, "paid_social": 2500, "google_ads": 2200, "seo_system": 1800})

    def test_every_service_has_scope(self) -> None:
        for s in SERVICE_CATALOG:
            self.assertTrue(s.name)
            self.assertTrue(s.description)
            self.assertGreater(len(s.includes), 0)
            self.assertGreater(len(s.excludes), 0)

    def test_to_line_item_carries_provenance(self) -> None:
        item = get_service("seo_system").to_line_item(item_id="abc")
        self.assertEqual(item.id, "abc")
        self.assertEqual(item.catalog_id, "seo_system")
        self.assertFalse(item.is_custom)
        self.assertEqual(item.quantity, 1)
        self.assertEqual(item.total, 1800)
        self.assertEqual(item.billing_cycle, BillingCycle.FIXED)
        self.assertEqual(item.description, get_service("seo_system").name)

    def test_unknown_service(self) -> None:
        with self.assertRaises(UnknownServiceError):
            get_service("print_ads")
        self.assertTrue(issubclass(UnknownServiceError, QuoteError))


if __name__ == "__main__":
    unittest.main()
