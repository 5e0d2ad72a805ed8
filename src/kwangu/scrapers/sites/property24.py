"""Property24 Kenya (property24.co.ke): for-sale search results."""

from kwangu.scrapers.base import ScrapeSource, UrlTemplate


class Property24Scraper(ScrapeSource):
    key = "property24"
    base_url = "https://www.property24.co.ke"

    url_templates = (
        UrlTemplate("/for-sale?Page={page}", "For Sale"),
        UrlTemplate("/property-for-sale?Page={page}", "For Sale"),
        UrlTemplate("/search?type=sale&page={page}", "For Sale"),
        UrlTemplate("/listings?type=sale&page={page}", "For Sale"),
    )

    card_selectors = (
        '[class*="result"]',
        ".p24_regularTile",
        '[class*="property"]',
        '[class*="listing"]',
        '[class*="tile"]',
        "article",
        ".property-item",
        ".listing-item",
    )
    price_selectors = ('[class*="price"]', ".p24_price", ".amount", '[class*="amount"]')
    location_selectors = (".p24_location", '[class*="location"]', '[class*="address"]')
    agent_selectors = (".p24_branding", '[class*="agency"]', '[class*="agent"]')

    # results load over XHR after first paint
    render_wait_selector = "a"
    render_wait_for_network = True

    single_image = True
