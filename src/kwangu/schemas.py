from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ListingCandidate(BaseModel):
    """A staged listing as captured from a source site, before normalization."""

    source: str
    source_id: Optional[str] = None
    url: str = Field(min_length=1)
    title: str = Field(min_length=1)
    price: Optional[str] = None          # free text, parsed later
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    area: Optional[float] = None         # square feet
    address: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    images: List[str] = Field(default_factory=list)
    listing_type: Optional[str] = None
    property_type: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

    model_config = {
        "extra": "ignore"  # ignore unexpected fields from scrapers
    }


class AgentInfo(BaseModel):
    name: str = "Unknown"
    phone: str = ""
    email: str = ""
    avatar: str = ""
    rating: float = 0
    reviews: int = 0
    experience: str = ""


class PropertyIn(BaseModel):
    title: str
    price: int = 0
    description: str = ""
    price_per_sqft: float = 0
    bedrooms: int = 0
    bathrooms: int = 0
    area: float = 0
    address: str = ""
    city: Optional[str] = None
    state: str
    zip_code: Optional[str] = None
    latitude: float = 0.0
    longitude: float = 0.0
    images: List[str] = Field(default_factory=list)
    listing_type: str = "For Sale"
    property_type: Optional[str] = None
    days_on_market: int = 0
    agent: AgentInfo = Field(default_factory=AgentInfo)
    features: List[str] = Field(default_factory=list)
    schools: List[Dict[str, Any]] = Field(default_factory=list)
    similar_properties: List[Dict[str, Any]] = Field(default_factory=list)
    price_history: List[Dict[str, Any]] = Field(default_factory=list)
