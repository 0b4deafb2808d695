from __future__ import annotations

import unittest
from types import SimpleNamespace

from pricing_engine import PricingError, budget_exceeded, format_money, grand_total, line_total
from quote_model import Currency, LineItem
from service_catalog import get_service


def _item(quantity: int, unit_price: float) -> LineItem:
    return LineItem(id=f"i{quantity}-{unit_price}", description="Work", quantity=quantity, unit_price=unit_price)


class TestPricingEngine(unittest.TestCase):
    def test_line_total_is_quantity_times_unit_price(self) -> None:
        self.assertEqual(line_total(SimpleNamespace(quantity=3, unit_price=2500.0)), 7500.0)
        self.assertEqual(_item(2, 12.5).total, 25.0)

    def test_line_total_rejects_invalid_inputs(self) -> None:
        with self.assertRaises(PricingError):
            line_total(SimpleNamespace(quantity=0, unit_price=10.0))
        with self.assertRaises(PricingError):
            line_total(SimpleNamespace(quantity=1, unit_price=-1.0))

    def test_grand_total_of_empty_draft_is_zero(self) -> None:
        self.assertEqual(grand_total([]), 0.0)

    def test_catalog_scenario_totals(self) -> None:
        web = get_service("web").to_line_item()
        social = get_service("paid_social").to_line_item()
        self.assertEqual(grand_total([web, social]), 7000.0)

        web = web.with_quantity(2)
        self.assertEqual(web.total, 9000.0)
        self.assertEqual(grand_total([web, social]), 11500.0)

    def test_budget_exceeded(self) -> None:
        items = [_item(1, 4500.0), _item(1, 2500.0)]
        self.assertTrue(budget_exceeded(items, 6000.0))
        self.assertFalse(budget_exceeded(items, 7000.0))
        self.assertFalse(budget_exceeded(items, 0.0))

    def test_format_money(self) -> None:
        self.assertEqual(format_money(11500, Currency.USD), "$11,500.00")
        self.assertEqual(format_money(1234.5, "€"), "€1,234.50")
        self.assertEqual(format_money(-5, Currency.INR), "-₹5.00")


if __name__ == "__main__":
    unittest.main()
