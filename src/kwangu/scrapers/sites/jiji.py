"""
Jiji Kenya (jiji.co.ke) classifieds, real-estate section.

Cards are rendered client side on some edges, so the rendered fallback waits
for any link to appear. Jiji serves listing photos from its own CDN
(jijistatic.com); anything else in a card is UI chrome.
"""

from kwangu.scrapers.base import ScrapeSource, UrlTemplate


class JijiScraper(ScrapeSource):
    key = "jiji"
    base_url = "https://jiji.co.ke"

    url_templates = (
        UrlTemplate("/real-estate?page={page}"),
        UrlTemplate("/real-estate/houses-for-sale?page={page}", "For Sale", "House"),
        UrlTemplate("/real-estate/apartments-for-sale?page={page}", "For Sale", "Apartment"),
        UrlTemplate("/real-estate/land-for-sale?page={page}", "For Sale", "Land"),
    )

    card_selectors = (
        '[class*="ad-item"]',
        '[class*="listing"]',
        '[class*="item"]',
        ".ad-item",
        ".listing-item",
        "article",
        "[data-ad-id]",
    )
    title_selectors = ("h3", "h4", ".title", '[class*="title"]')

    render_wait_selector = "a"

    def is_property_image(self, src: str, alt: str) -> bool:
        alt = alt.lower()
        if "jijistatic.com" in src:
            return True
        return "photo" in alt and "icon" not in alt
