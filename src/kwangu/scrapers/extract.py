# src/kwangu/scrapers/extract.py
"""
Field extraction helpers shared by the site adapters.

All helpers are forgiving: a miss yields None (or an empty list), never an
exception, so one odd card cannot break a page.
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urljoin

from bs4 import Tag

BED_RE = re.compile(r"(\d+)\s*bed", re.I)
BATH_RE = re.compile(r"(\d+)\s*bath", re.I)
AREA_RE = re.compile(
    r"(\d[\d,]*(?:\.\d+)?)\s*(sq\.?\s*ft|sqft|ft2|sq\.?\s*m|sqm|m2|m²|acres?|ha\b)",
    re.I,
)

UNIT_TO_SQFT = {
    "sqft": 1.0,
    "sqm": 10.7639,
    "acre": 43560.0,
    "ha": 107639.0,
}

# Towns we can recognise inside a free-text location ("Kilimani, Nairobi")
KNOWN_TOWNS = {
    "Nairobi", "Mombasa", "Kisumu", "Nakuru", "Eldoret", "Thika", "Kiambu",
    "Machakos", "Kajiado", "Nyeri", "Malindi", "Naivasha", "Kitengela",
    "Ruiru", "Kikuyu", "Athi River", "Nanyuki", "Kilifi", "Diani", "Syokimau",
    "Ngong", "Rongai", "Juja", "Limuru", "Kitale", "Meru", "Embu", "Kericho",
}
KNOWN_TOWNS_LOWER = {t.lower(): t for t in KNOWN_TOWNS}

# Image URLs / alt texts that are never property photos
NON_PROPERTY_IMAGE_HINTS = (
    "icon", "logo", "sprite", "avatar", "placeholder", "badge", "flag", "pixel",
)

IMAGE_ATTRS = ("src", "data-src", "data-lazy", "data-original")


def clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = " ".join(value.split())
    return text or None


def card_text(card: Tag) -> str:
    return " ".join(card.get_text(separator=" ", strip=True).split())


def first_text(card: Tag, selectors: Sequence[str]) -> Optional[str]:
    """Text of the first element (document order) matching any selector."""
    if not selectors:
        return None
    el = card.select_one(", ".join(selectors))
    if el is None:
        return None
    return clean_text(el.get_text(" ", strip=True))


def _match_int(pattern: re.Pattern, text: str) -> Optional[int]:
    m = pattern.search(text or "")
    if not m:
        return None
    return int(m.group(1))


def extract_bedrooms(text: str) -> Optional[int]:
    return _match_int(BED_RE, text)


def extract_bathrooms(text: str) -> Optional[int]:
    return _match_int(BATH_RE, text)


def _norm_unit(unit: str) -> str:
    u = unit.lower().replace(".", "").replace(" ", "")
    if u in ("sqm", "m2", "m²"):
        return "sqm"
    if u.startswith("acre"):
        return "acre"
    if u == "ha":
        return "ha"
    return "sqft"


def extract_area_sqft(text: str) -> Optional[float]:
    m = AREA_RE.search(text or "")
    if not m:
        return None
    try:
        value = float(m.group(1).replace(",", ""))
    except ValueError:
        return None
    return round(value * UNIT_TO_SQFT[_norm_unit(m.group(2))], 2)


def guess_city(*texts: Optional[str]) -> Optional[str]:
    """First known town mentioned in any of the texts, longest names first."""
    for text in texts:
        if not text:
            continue
        lowered = text.lower()
        for town in sorted(KNOWN_TOWNS_LOWER, key=len, reverse=True):
            if re.search(rf"\b{re.escape(town)}\b", lowered):
                return KNOWN_TOWNS_LOWER[town]
    return None


def absolute_url(base_url: str, href: Optional[str]) -> Optional[str]:
    href = (href or "").strip()
    if not href or href.startswith(("#", "javascript:", "mailto:", "tel:")):
        return None
    if href.startswith("http"):
        return href
    return urljoin(base_url, href)


def image_src(img: Tag) -> Optional[str]:
    for attr in IMAGE_ATTRS:
        src = (img.get(attr) or "").strip()
        if src:
            return src
    return None


def looks_like_property_image(src: str, alt: str = "") -> bool:
    lowered = src.lower()
    if lowered.startswith("data:") or lowered.split("?")[0].endswith(".svg"):
        return False
    if any(hint in lowered for hint in NON_PROPERTY_IMAGE_HINTS):
        return False
    alt = alt.lower()
    return not ("icon" in alt or "logo" in alt)


def unique(values: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out
