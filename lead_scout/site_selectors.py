# lead_scout/site_selectors.py
"""
Selector priority lists for every source surface.

Each list is evaluated in order and the first strategy that yields a usable
value wins. Lists can be overridden per key from a JSON file (see
ScraperConfig.selectors_file); the override is merged recursively over these
defaults.
"""

import copy
from typing import Any, Dict

DEFAULT_SELECTORS: Dict[str, Any] = {
    "google_maps": {
        "base_url": "https://www.google.com",
        "search_url": "https://www.google.com/maps/search/{query}+in+{location}",
        "captcha": 'form[action*="/sorry/index"], div[class*="captcha"], img[src*="/sorry/image"]',
        "result_nodes": 'div[role="article"], div.Nv2PK',
        "scroll_container": "div.m6QErb[aria-label]",
        "payload_endpoints": ["/maps/search", "/maps/place"],
        "embedded_payload": "#searchAPIResponseData",
        "listing": {
            "listings": [
                "div[data-result-index], div.Nv2PK, div[jsaction*='mouseover'], a[data-result-index]",
            ],
            "name": [
                "div[role='button'] div.fontHeadlineSmall",
                "a[href*='/maps/place'] div.fontHeadlineSmall",
                "div.qBF1Pd.fontHeadlineSmall",
                "a[data-value='Title']",
                "div.fontHeadlineSmall",
                "h3",
                "a[href*='/maps/place']",
            ],
            "category": [
                "div.W4Efsd:nth-of-type(1) span",
                "span.YhemCb",
                "div.W4Efsd",
                "span[jsinstance]",
            ],
            "address": [
                "div.W4Efsd:nth-of-type(2) span",
                "div.W4Efsd span[jsan]",
                "div.W4Efsd span[aria-hidden='true']",
                "span.UsdlK",
            ],
            "rating": [
                "span.MW4etd",
                "div.fontBodyMedium span",
                "span[aria-label*='star']",
            ],
            "rating_count": [
                "span.UY7F9",
                "a[href*='reviews'] span",
                "button span",
            ],
            "phone": [
                "button[data-item-id='phone']",
                "button[aria-label*='phone']",
                "span[aria-label*='phone']",
                "a[href^='tel:']",
                "div[data-phone-number]",
            ],
            "website": [
                "a[data-item-id='authority']",
                "a[aria-label*='website']",
                "a[href^='http']:not([href*='google.com'])",
                "a.lcr4fd",
            ],
            "detail_link": [
                "a.hfpxzc",
                "a[href*='/maps/place']",
                "a[data-result-index]",
            ],
        },
        "detail": {
            "phone_button": "button[data-item-id^='phone:tel:']",
            "phone_text": ".Io6YTe",
            "phone_aria": "button[aria-label^='Phone:']",
            "website": [
                "a[data-item-id='authority']",
                "a[aria-label*='website']",
            ],
            "address": "button[data-item-id='address'] .Io6YTe",
            "description_meta": [
                "meta[property='og:description']",
                "meta[name='description']",
            ],
            "description": [
                "div[class*='fontBodyMedium'][class*='description']",
                "div[class*='PYvSYb']",
                "div[aria-label*='About']",
                "div[class*='m6QErb']",
                "div[data-section-id*='overview']",
                "div[data-section-id*='description']",
                "div[class*='section-description']",
                "div[class*='business-description']",
                "div[class*='about-business']",
                "div[class*='overview-content']",
                "div[itemprop='description']",
            ],
            "description_headers": "h2, h3, h4, div[aria-label]",
        },
    },
    "yellow_pages": {
        "base_url": "https://www.yellowpages.com",
        "captcha": 'div[class*="captcha"], iframe[src*="captcha"], form[action*="captcha"]',
        "search_url": "https://www.yellowpages.com/search?search_terms={query}&geo_location_terms={location}&page={page}",
        "results_ready": ".result, .search-result, .business-listing",
        "next_page": 'a.next, .next-page, .pagination-next, a[aria-label="Next page"]',
        "result_nodes": [
            ".result",
            ".business-listing",
            ".srp-listing",
            ".v-card",
            '[data-ya-class="result"]',
            ".search-result",
        ],
        "show_more_controls": "button, div[role='button'], span[role='button'], a",
        "show_more_texts": [
            "Show more",
            "Load more",
            "More results",
            "See more",
            "Load additional",
        ],
        "listing": {
            "listings": [
                ".result",
                ".business-listing",
                ".srp-listing",
                ".v-card",
                '[data-ya-class="result"]',
                ".search-result",
            ],
            "name": [
                ".business-name",
                ".srp-business-title",
                ".name",
                "[class*='name']",
                "h2",
                "h3",
                "h4",
            ],
            "phone": [".phones", ".srp-phone", "[class*='phone']", ".phone"],
            "address": [".adr", ".srp-address", "[class*='address']", ".address", ".street-address"],
            "category": [".categories", ".srp-categories", "[class*='category']", ".category", ".links a"],
            "website": [
                "a.track-visit-website",
                "a.website-link",
                "a.business-website",
                ".website",
                "a[href*='http']",
            ],
            "description": [".snippet", ".description", "[class*='desc']", ".business-description"],
            "rating": [".rating", "[class*='star']", "[aria-label*='star']"],
            "rating_count": [".count", ".review-count", "[class*='review']"],
            "detail_link": ["a.business-name", "a[href*='/mip/']", "a[href^='/']", "a"],
        },
        "detail": {
            "description": [
                ".business-description",
                ".description-content",
                ".about-business",
                ".snippet",
                "[itemprop='description']",
                ".additional-info",
                ".details-content",
            ],
        },
    },
}


def merge_selectors(loaded: Dict, default: Dict) -> Dict:
    """Recursively merge loaded selectors with defaults, prioritizing loaded."""
    merged = {}
    for key, value in default.items():
        if key in loaded:
            if isinstance(value, dict) and isinstance(loaded[key], dict):
                merged[key] = merge_selectors(loaded[key], value)
            else:
                merged[key] = copy.deepcopy(loaded[key])
        else:
            merged[key] = copy.deepcopy(value)
    # Keys only present in the override are kept as-is
    for key in loaded:
        if key not in default:
            merged[key] = copy.deepcopy(loaded[key])
    return merged
