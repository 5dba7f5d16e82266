"""
Request and response models shared by the search pipeline and the API
"""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from listings.db.models import Availability, Furnishing, PropertyStatus

NO_RESULTS_MESSAGE = "No properties found. Try adjusting your filters."
SEARCH_FAILED_MESSAGE = "Something went wrong, please try again later."


class LookupView(BaseModel):
    name: str
    slug: str


class AgentView(BaseModel):
    id: int
    name: str
    slug: str
    email: Optional[str] = None
    phone: Optional[str] = None
    photoUrl: Optional[str] = None


class ImageView(BaseModel):
    id: int
    url: str
    order: int


class PropertyView(BaseModel):
    id: int
    slug: str
    title: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[int] = None
    size: Optional[float] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    referenceNumber: Optional[str] = None
    permitNumber: Optional[str] = None
    availability: Optional[str] = None
    status: Optional[str] = None
    furnishing: Optional[str] = None
    isLuxe: bool = False
    isFeatured: bool = False
    isExclusive: bool = False
    offeringType: Optional[LookupView] = None
    propertyType: Optional[LookupView] = None
    community: Optional[LookupView] = None
    subCommunity: Optional[str] = None
    city: Optional[str] = None
    developer: Optional[str] = None
    agent: Optional[AgentView] = None
    images: List[ImageView] = Field(default_factory=list)
    hasImages: bool = False
    createdAt: Optional[datetime] = None


class PropertyDetail(PropertyView):
    """Property detail with a few other listings from the same community"""
    similarProperties: List[PropertyView] = Field(default_factory=list)


class MetaLinks(BaseModel):
    currentPage: int
    totalPages: int
    hasNext: bool
    hasPrev: bool


class ListingPage(BaseModel):
    """Search response contract"""
    properties: List[PropertyView] = Field(default_factory=list)
    pages: List[int] = Field(default_factory=list)
    totalCount: int = 0
    metaLinks: Optional[MetaLinks] = None
    error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    message: Optional[str] = None


class CommunitySummary(BaseModel):
    id: int
    name: str
    slug: str
    shortName: Optional[str] = None
    propertyCount: int = 0
    rentCount: int = 0
    saleCount: int = 0
    commercialRentCount: int = 0
    commercialSaleCount: int = 0


class PropertyCreate(BaseModel):
    title: str = Field(min_length=1)
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[int] = Field(default=None, ge=0)
    size: Optional[float] = Field(default=None, ge=0)
    bedrooms: Optional[int] = Field(default=None, ge=0)
    bathrooms: Optional[int] = Field(default=None, ge=0)
    reference_number: Optional[str] = None
    permit_number: Optional[str] = None
    availability: Availability = Availability.AVAILABLE
    status: PropertyStatus = PropertyStatus.PUBLISHED
    furnishing: Optional[Furnishing] = None
    offering_type: str
    property_type: str
    community: Optional[str] = None
    sub_community: Optional[str] = None
    city: Optional[str] = None
    agent: Optional[str] = None
    developer: Optional[str] = None
    is_luxe: bool = False
    is_featured: bool = False
    is_exclusive: bool = False
    images: List[str] = Field(default_factory=list)


class PropertyUpdate(BaseModel):
    title: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[int] = Field(default=None, ge=0)
    size: Optional[float] = Field(default=None, ge=0)
    bedrooms: Optional[int] = Field(default=None, ge=0)
    bathrooms: Optional[int] = Field(default=None, ge=0)
    permit_number: Optional[str] = None
    availability: Optional[Availability] = None
    status: Optional[PropertyStatus] = None
    furnishing: Optional[Furnishing] = None
    offering_type: Optional[str] = None
    property_type: Optional[str] = None
    community: Optional[str] = None
    is_luxe: Optional[bool] = None
    is_featured: Optional[bool] = None
    is_exclusive: Optional[bool] = None
    images: Optional[List[str]] = None


class ImageOrderUpdate(BaseModel):
    image_ids: List[int]


class CommunityUpdate(BaseModel):
    name: Optional[str] = None
    short_name: Optional[str] = None


class RevalidateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str = ""
    # Offering-type slug or numeric id
    offering_type_id: Optional[Union[int, str]] = Field(default=None, alias="offeringTypeId")
    secret: str = ""
