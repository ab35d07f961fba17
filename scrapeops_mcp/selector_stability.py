from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

STABLE = "stable"
DYNAMIC = "dynamic"
OBFUSCATED = "obfuscated"


@dataclass(frozen=True)
class StabilityMetrics:
    stability_score: Optional[float] = None
    random_ratio: Optional[float] = None
    avg_entropy: Optional[float] = None
    common_selectors: Optional[int] = None
    changing_selectors: Optional[int] = None
    successful_requests: Optional[int] = None
    total_requests: Optional[int] = None

    @classmethod
    def from_comparison(
        cls,
        comparison: Optional[Mapping[str, Any]],
        *,
        successful_requests: Optional[int] = None,
        total_requests: Optional[int] = None,
    ) -> "StabilityMetrics":
        """Берём только числовые поля, остальное считаем отсутствующим."""
        comparison = comparison or {}

        def num(key: str) -> Optional[float]:
            v = comparison.get(key)
            return v if isinstance(v, (int, float)) and not isinstance(v, bool) else None

        def count(key: str) -> Optional[int]:
            v = comparison.get(key)
            return v if isinstance(v, int) and not isinstance(v, bool) else None

        return cls(
            stability_score=num("stability_score"),
            random_ratio=num("random_ratio"),
            avg_entropy=num("average_entropy"),
            common_selectors=count("common_selectors"),
            changing_selectors=count("changing_selectors"),
            successful_requests=successful_requests,
            total_requests=total_requests,
        )


@dataclass(frozen=True)
class SelectorAssessment:
    summary: str
    approach: str
    use: list[str]
    avoid: list[str]
    recommendations: list[str]

    def strategy(self) -> dict[str, Any]:
        return {"approach": self.approach, "use": list(self.use), "avoid": list(self.avoid)}


def _percent(value: float) -> str:
    return f"{value * 100:.0f}%"


def assess_selectors(label: Optional[str], metrics: StabilityMetrics) -> SelectorAssessment:
    """Метка стабильности + метрики -> один из четырёх фиксированных шаблонов."""
    if label == STABLE:
        score = f" (stability score: {_percent(metrics.stability_score)})" if metrics.stability_score is not None else ""
        return SelectorAssessment(
            summary=(
                f"CSS selectors are stable{score}. Class names and IDs are consistent across page loads "
                "— safe to use for scraping."
            ),
            approach="Standard CSS selectors — class names and IDs are reliable",
            use=[
                "CSS class selectors (e.g., .product-title, .price)",
                "ID selectors (e.g., #product-name)",
                "Data attributes (e.g., [data-product-id])",
                "Combined selectors for precision (e.g., .product-card .title)",
            ],
            avoid=[
                "Overly long selector chains that break on minor DOM changes",
                "Position-based selectors like :nth-child() unless necessary",
            ],
            recommendations=[
                "CSS selectors are stable — you can reliably use class names and IDs.",
                "Prefer semantic class names over structural selectors for maintainability.",
                "Use data-* attributes when available — they are typically the most stable.",
                "Test selectors periodically, as stability can change with site updates.",
            ],
        )

    if label == OBFUSCATED:
        entropy = f" (avg entropy: {metrics.avg_entropy:.2f})" if metrics.avg_entropy is not None else ""
        random_text = (
            f" {_percent(metrics.random_ratio)} of selectors appear random." if metrics.random_ratio is not None else ""
        )
        return SelectorAssessment(
            summary=(
                f"CSS selectors are obfuscated{entropy}.{random_text} Class names appear auto-generated with high "
                "randomness (e.g., hash-based names from CSS-in-JS, styled-components, or Tailwind JIT). "
                "Do NOT rely on class names."
            ),
            approach="Avoid class-based selectors entirely — use structural and attribute-based targeting",
            use=[
                "Semantic HTML tags (e.g., h1, h2, article, main, nav, section)",
                "Data attributes (e.g., [data-testid], [data-product-id])",
                'ARIA attributes (e.g., [role="heading"], [aria-label])',
                'Tag + attribute combinations (e.g., input[name="price"])',
                "XPath for complex structural targeting",
                "JSON-LD or embedded JSON as an alternative to HTML parsing",
            ],
            avoid=[
                "CSS class selectors — they change on every build/deploy",
                "ID selectors unless they are clearly semantic (not hashed)",
                "Any selector containing random strings or hash-like patterns",
            ],
            recommendations=[
                "Class names are obfuscated — do NOT use them in scraping selectors.",
                "Use semantic HTML elements (h1, article, main) and data-* attributes instead.",
                "Check for JSON-LD or embedded JSON data — often more reliable than parsing obfuscated HTML.",
                "Use the identify_data_sources tool to check if data is available via API/XHR calls "
                "(avoids HTML parsing entirely).",
                "Consider using XPath expressions with text content matching for last-resort targeting.",
                "If using render_js, use the extract_data tool with LLM mode — it can handle obfuscated selectors.",
            ],
        )

    if label == DYNAMIC:
        score = f" (stability score: {_percent(metrics.stability_score)})" if metrics.stability_score is not None else ""
        changing = (
            f" {metrics.changing_selectors} selectors change between loads."
            if metrics.changing_selectors is not None
            else ""
        )
        return SelectorAssessment(
            summary=(
                f"CSS selectors are partially dynamic{score}.{changing} Some selectors change between page loads "
                "(likely CSS Modules or build-time generated suffixes), but many remain consistent."
            ),
            approach="Mixed strategy — use stable selectors where possible, avoid dynamic ones",
            use=[
                "ID selectors (usually more stable than classes)",
                "Data attributes (e.g., [data-testid], [data-id])",
                "Stable class names (semantic names without hash suffixes)",
                'Attribute selectors with partial matching (e.g., [class*="product"])',
                "Tag-based selectors for structural navigation",
            ],
            avoid=[
                "Class names with hash suffixes (e.g., .product-card_a3x7f)",
                "Classes that contain random alphanumeric sequences",
                "Full class name matching — use partial/contains matching if needed",
            ],
            recommendations=[
                "Some selectors are dynamic — look for patterns with stable base names and changing hash suffixes.",
                'Use partial class matching (e.g., [class*="product"]) to match the stable prefix while ignoring '
                "the dynamic suffix.",
                "Prefer data-* attributes and IDs over class names.",
                "Check for JSON-LD or embedded JSON as a more stable data source.",
                "Monitor for selector changes — dynamic selectors may shift on each deployment.",
            ],
        )

    return SelectorAssessment(
        summary=(
            "Unable to determine CSS selector stability — insufficient data "
            f"({metrics.successful_requests}/{metrics.total_requests} requests succeeded)."
        ),
        approach="Conservative — assume selectors may be unstable",
        use=[
            "Semantic HTML tags (h1, h2, article, main)",
            "Data attributes",
            "ID selectors",
            "JSON-LD or embedded JSON data",
        ],
        avoid=[
            "Class-based selectors until stability is confirmed",
            "Complex selector chains",
        ],
        recommendations=[
            "The analysis could not complete — the page may be blocking automated requests.",
            "Try running analyze_scraping_difficulty to check for anti-bot protections.",
            "Consider using detect_anti_bots to identify specific protection systems.",
            "If the page is accessible via browser, try with render_js: true.",
        ],
    )
