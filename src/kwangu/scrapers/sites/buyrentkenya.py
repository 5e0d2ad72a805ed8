"""BuyRentKenya (buyrentkenya.com): sale and rental search results."""

from kwangu.scrapers.base import ScrapeSource, UrlTemplate


class BuyRentKenyaScraper(ScrapeSource):
    key = "buyrentkenya"
    base_url = "https://www.buyrentkenya.com"

    url_templates = (
        UrlTemplate("/property-for-sale?page={page}", "For Sale"),
        UrlTemplate("/houses-for-sale?page={page}", "For Sale", "House"),
        UrlTemplate("/flats-apartments-for-sale?page={page}", "For Sale", "Apartment"),
        UrlTemplate("/property-for-rent?page={page}", "For Rent"),
    )

    card_selectors = (
        '[data-cy="listing-card"]',
        '[class*="listing-card"]',
        '[class*="property-card"]',
        '[class*="listing"]',
        "article",
    )
    title_selectors = ('[data-cy="card-title"]', "h2", "h3", '[class*="title"]')
    price_selectors = ('[data-cy="card-price"]', '[class*="price"]', '[class*="amount"]')
    location_selectors = ('[data-cy="card-location"]', '[class*="location"]', '[class*="address"]')
    source_id_attrs = ("data-listing-id", "data-id", "data-ad-id")

    render_wait_selector = '[class*="listing"]'
