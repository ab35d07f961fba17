from __future__ import annotations

from .base import SignatureDefinition, SignatureMatcher, compile_patterns

# Код типа технологии -> человекочитаемая категория.
TECH_TYPE_LABELS: dict[str, str] = {
    "framework": "Frameworks",
    "library": "Libraries",
    "css_framework": "CSS Frameworks",
    "cms": "CMS",
    "ecommerce": "Ecommerce Platforms",
    "analytics": "Analytics",
    "payment": "Payment",
    "build_tool": "Build Tools",
    "unknown": "Other",
}


def tech_type_label(tech_type: str | None) -> str:
    return TECH_TYPE_LABELS.get(tech_type or "", "Other")


def _tech(name: str, category: str, *patterns: str, renders_required: bool = False) -> SignatureDefinition:
    return SignatureDefinition(
        name=name,
        presence_patterns=compile_patterns(*patterns),
        renders_required=renders_required,
        category=category,
    )


# Локальная таблица: используется, когда анализатор недоступен.
TECHNOLOGIES: tuple[SignatureDefinition, ...] = (
    # --- frameworks ---
    _tech("Next.js", "framework", r"__NEXT_DATA__", r"_next\/static"),
    _tech("Nuxt.js", "framework", r"__NUXT__", r"_nuxt\/"),
    _tech("React", "framework", r"data-reactroot", r"react-dom", r"react\.production", renders_required=True),
    _tech("Vue.js", "framework", r"data-v-[a-f0-9]", r"vue\.runtime", r"vue\.global", renders_required=True),
    _tech("Angular", "framework", r"ng-version=", r"ng-app", renders_required=True),
    _tech("Svelte", "framework", r"svelte-[a-z0-9]", r"__svelte", renders_required=True),
    _tech("SolidJS", "framework", r"data-hk=", r"solid-js", renders_required=True),
    _tech("Qwik", "framework", r"q:container", r"qwikloader"),
    _tech("Astro", "framework", r"astro-island", r"data-astro-cid"),
    _tech("Remix", "framework", r"__remixContext", r"__remixManifest"),
    _tech("Gatsby", "framework", r"___gatsby", r"gatsby-"),
    _tech("Eleventy", "framework", r"<meta[^>]+generator[^>]+eleventy"),
    # --- libraries ---
    _tech("jQuery", "library", r"jquery[.\-/]"),
    _tech("HTMX", "library", r"htmx\.org", r"hx-get=", r"hx-post="),
    _tech("Alpine.js", "library", r"x-data=", r"alpinejs"),
    _tech("Turbo", "library", r"@hotwired\/turbo", r"data-turbo"),
    _tech("Stimulus", "library", r"data-controller=", r"@hotwired\/stimulus"),
    # --- cms ---
    _tech("WordPress", "cms", r"\/wp-content\/", r"\/wp-includes\/", r"<meta[^>]+generator[^>]+wordpress"),
    _tech("Strapi", "cms", r"strapi"),
    _tech("Sanity", "cms", r"cdn\.sanity\.io"),
    # --- css frameworks ---
    _tech("Bootstrap", "css_framework", r"bootstrap(\.min)?\.(css|js)"),
    _tech("Tailwind CSS", "css_framework", r"tailwind", r"class=\"[^\"]*\b(flex|grid) [^\"]*\b(px|py|mx|my)-\d"),
    # --- ecommerce ---
    _tech("Shopify", "ecommerce", r"cdn\.shopify\.com", r"Shopify\.theme"),
    _tech("WooCommerce", "ecommerce", r"woocommerce"),
    _tech("BigCommerce", "ecommerce", r"bigcommerce\.com"),
    _tech("Magento", "ecommerce", r"Mage\.Cookies", r"\/static\/version\d+\/frontend\/"),
    # --- analytics / payment / build ---
    _tech("Google Analytics", "analytics", r"google-analytics\.com", r"googletagmanager\.com\/gtag"),
    _tech("Stripe", "payment", r"js\.stripe\.com"),
    _tech("Vite", "build_tool", r"\/@vite\/client", r"type=\"module\"[^>]+\/assets\/index-[\w-]+\.js"),
)

_MATCHER = SignatureMatcher(TECHNOLOGIES, first_match_only=True)


def detect_technologies(html: str) -> list[dict[str, str]]:
    """
    Технологии в формате ответа анализатора: {name, type, version}.
    Версию по HTML не определяем.
    """
    return [
        {"name": m.name, "type": m.definition.category or "unknown", "version": ""}
        for m in _MATCHER.match(html)
    ]
