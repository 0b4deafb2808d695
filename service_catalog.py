from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from quote_model import BillingCycle, LineItem, QuoteError, new_item_id


class UnknownServiceError(QuoteError):
    pass


@dataclass(frozen=True)
class CatalogService:
    id: str
    name: str
    description: str
    price: float
    icon: str
    includes: Tuple[str, ...]
    excludes: Tuple[str, ...]

    def to_line_item(self, *, item_id: str | None = None) -> LineItem:
        return LineItem(
            id=item_id or new_item_id(),
            description=self.name,
            service_description=self.description,
            quantity=1,
            unit_price=self.price,
            includes=self.includes,
            excludes=self.excludes,
            billing_cycle=BillingCycle.FIXED,
            catalog_id=self.id,
        )


SERVICE_CATALOG: Tuple[CatalogService, ...] = (
    CatalogService(
        id="web",
        name="Growth-Centric Web Infrastructure",
        description="A high-performance digital foundation engineered for rapid scaling and security.",
        price=4500,
        icon="web",
        includes=(
            "High-Performance UI/UX Design",
            "Backend Development",
            "Scalable Cloud Infrastructure",
            "Database Architecture",
            "Security & SSL Implementation",
            "Conversion Rate Optimization (CRO) Setup",
        ),
        excludes=(
            "Third-Party API Usage Fees",
            "Premium Stock Media Licenses",
            "Hardware Procurement",
        ),
    ),
    CatalogService(
        id="paid_social",
        name="Paid Social Growth Engine",
        description=(
            "Strategic advertising and audience growth across Meta platforms including Facebook and Instagram."
        ),
        price=2500,
        icon="ads_click",
        includes=(
            "Strategic Campaign Architecture",
            "Ad Creative Asset Design",
            "Advanced Pixel & API Tracking",
            "Lookalike & Interest Targeting",
            "Weekly Performance Optimization",
        ),
        excludes=(
            "Direct Ad Spend",
            "Influencer Outreach Fees",
            "Long-form Video Production",
        ),
    ),
    CatalogService(
        id="google_ads",
        name="High-Intent Search Capture",
        description=(
            "Capture leads at the moment of discovery by dominating high-value Google Search results "
            "with precision-targeted PPC."
        ),
        price=2200,
        icon="query_stats",
        includes=(
            "Strategic Google Ads Account Architecture",
            "High-Intent Keyword Mining & Negative Lists",
            "Persuasive Search Ad Copywriting & Extensions",
            "Conversion Tracking & GTM Calibration",
            "Daily Bid Optimization & ROAS Management",
            "Comprehensive Monthly Performance Reports",
        ),
        excludes=(
            "Direct Media Spend (Billed by Google)",
            "Video/Display Banner Creative Production",
            "Website Landing Page Development",
        ),
    ),
    CatalogService(
        id="seo_system",
        name="Search Authority System",
        description="Technical and content-driven SEO strategy to establish dominant organic search presence.",
        price=1800,
        icon="hub",
        includes=(
            "Technical SEO Infrastructure",
            "Semantic Content Strategy",
            "Authority Link Building (Monthly)",
            "Local SEO Visibility Pack",
            "Rank Tracking & Competitor Analysis",
        ),
        excludes=(
            "Paid Backlink Placement Fees",
            "Guaranteed #1 Rankings",
            "Web Development Fixes",
        ),
    ),
)

_BY_ID: Dict[str, CatalogService] = {s.id: s for s in SERVICE_CATALOG}


def get_service(service_id: str) -> CatalogService:
    try:
        return _BY_ID[service_id]
    except KeyError:
        raise UnknownServiceError(f"Unknown catalog service: {service_id!r}") from None
