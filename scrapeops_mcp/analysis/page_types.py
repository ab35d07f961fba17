from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from scrapeops_mcp.utils import drop_none

VALID_STATUS = "valid"
CACHED_REASONING = "Matched from cached URL pattern"


@dataclass(frozen=True)
class ParsingStrategy:
    approach: str
    key_fields: tuple[str, ...]
    tips: tuple[str, ...]
    data_schema: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return drop_none({
            "approach": self.approach,
            "data_schema": self.data_schema,
            "key_fields": list(self.key_fields),
            "tips": list(self.tips),
        })


PARSING_STRATEGIES: dict[str, ParsingStrategy] = {
    "product_page": ParsingStrategy(
        approach="Structured extraction — target product details, pricing, and availability",
        data_schema="product_page",
        key_fields=("name", "price", "description", "images", "availability", "reviews", "sku", "brand"),
        tips=("Check for LD+JSON Product schema", "Look for price in meta tags", "Images often in og:image or gallery containers"),
    ),
    "product_search_page": ParsingStrategy(
        approach="List extraction — iterate over product cards/tiles in search results",
        data_schema="product_search_page",
        key_fields=("product_name", "price", "url", "image", "rating", "review_count"),
        tips=("Look for repeating CSS patterns for product cards", "Pagination links for next pages", "Check for total results count"),
    ),
    "product_category_page": ParsingStrategy(
        approach="List extraction — similar to search results but organized by category",
        data_schema="product_search_page",
        key_fields=("product_name", "price", "url", "image", "category", "subcategory"),
        tips=("Check for breadcrumb navigation", "Category filters in sidebar", "May have subcategory links"),
    ),
    "article_page": ParsingStrategy(
        approach="Content extraction — target article body, metadata, and author info",
        key_fields=("title", "author", "published_date", "content", "tags", "category"),
        tips=("Check for article schema in LD+JSON", "Main content usually in <article> tag", "Published date often in <time> element"),
    ),
    "article_list_page": ParsingStrategy(
        approach="List extraction — iterate over article cards/summaries",
        key_fields=("title", "url", "excerpt", "author", "date", "image"),
        tips=("Look for repeating article preview patterns", "Pagination or infinite scroll", "RSS feed link may exist"),
    ),
    "serp_search_page": ParsingStrategy(
        approach="Search results extraction — parse individual result entries",
        data_schema="serp_search_page",
        key_fields=("title", "url", "snippet", "position", "featured_snippets"),
        tips=("Results typically in ordered list or repeated divs", "Check for ads vs organic results", "Related searches at bottom"),
    ),
    "job_page": ParsingStrategy(
        approach="Structured extraction — target job details and requirements",
        data_schema="job_page",
        key_fields=("title", "company", "location", "salary", "description", "requirements", "posted_date"),
        tips=("Check for JobPosting schema in LD+JSON", "Apply button link", "Company info section"),
    ),
    "job_search_page": ParsingStrategy(
        approach="List extraction — iterate over job listing cards",
        data_schema="job_search_page",
        key_fields=("title", "company", "location", "salary_range", "url", "posted_date"),
        tips=("Pagination or load-more buttons", "Filter sidebar for location/salary", "Sort options"),
    ),
    "real_estate_page": ParsingStrategy(
        approach="Structured extraction — target property details and pricing",
        data_schema="real_estate_page",
        key_fields=("address", "price", "bedrooms", "bathrooms", "square_feet", "description", "images", "agent"),
        tips=("Check for RealEstateListing schema", "Photo gallery for property images", "Map embed for location"),
    ),
    "real_estate_search_page": ParsingStrategy(
        approach="List extraction — iterate over property listing cards",
        data_schema="real_estate_search_page",
        key_fields=("address", "price", "bedrooms", "bathrooms", "url", "image"),
        tips=("Map view vs list view", "Filter by price/beds/location", "Pagination or infinite scroll"),
    ),
    "company_page": ParsingStrategy(
        approach="Structured extraction — target company profile information",
        data_schema="company_page",
        key_fields=("name", "description", "industry", "location", "employees", "website", "founded"),
        tips=("Check for Organization schema in LD+JSON", "About section for key details", "Social media links"),
    ),
    "home_page": ParsingStrategy(
        approach="Navigation extraction — identify key sections and links for crawling deeper pages",
        key_fields=("navigation_links", "featured_content", "categories", "search_form"),
        tips=("Use as starting point for site crawl", "Identify main content categories", "Look for sitemap link"),
    ),
    "news_page": ParsingStrategy(
        approach="Content extraction — similar to article page, focus on news-specific metadata",
        key_fields=("headline", "author", "published_date", "content", "source", "category"),
        tips=("Check for NewsArticle schema in LD+JSON", "Byline for author info", "Related articles section"),
    ),
}

DEFAULT_STRATEGY = ParsingStrategy(
    approach="General extraction — analyze page structure and extract visible content",
    key_fields=("title", "content", "links", "images"),
    tips=("Inspect the page HTML structure", "Look for repeating patterns", "Check for structured data in LD+JSON or meta tags"),
)


def parsing_strategy(page_type: Optional[str]) -> ParsingStrategy:
    return PARSING_STRATEGIES.get(page_type or "", DEFAULT_STRATEGY)


def is_valid_classification(result: Mapping[str, Any]) -> bool:
    return result.get("status") == VALID_STATUS


def page_type_data(result: Mapping[str, Any]) -> dict[str, Any]:
    """data бывает строкой (совпадение из кэша) или объектом (решение LLM)."""
    data = result.get("data")
    if isinstance(data, str):
        return {"page_type": data, "reasoning": CACHED_REASONING, "confidence_level": "high", "page_regex": ""}
    if isinstance(data, Mapping):
        return dict(data)
    return {}


def classify_response(url: str, result: Mapping[str, Any]) -> dict[str, Any]:
    """Ответ determine-page-type -> ответ инструмента."""
    if not is_valid_classification(result):
        return {
            "success": False,
            "url": url,
            "error": f"Classification failed: {result.get('error') or result.get('status')}",
            "recommendation": "The page content may be insufficient for classification. Try with a different URL.",
        }

    page = page_type_data(result)
    return {
        "success": True,
        "url": url,
        "classification": drop_none({
            "page_type": page.get("page_type"),
            "reasoning": page.get("reasoning"),
            "confidence_level": page.get("confidence_level"),
            "page_regex": page.get("page_regex") or None,
        }),
        "parsing_strategy": parsing_strategy(page.get("page_type")).to_dict(),
    }
