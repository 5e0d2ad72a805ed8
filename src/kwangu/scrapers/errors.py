class ScrapeError(Exception):
    """Base class for fetch failures raised by the scrapers package."""


class FetchError(ScrapeError):
    """Static HTTP fetch failed (timeout, network error or 4xx/5xx)."""

    def __init__(self, url: str, message: str, status_code: int | None = None):
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status_code = status_code


class RenderError(ScrapeError):
    """Headless browser could not load the page."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url
