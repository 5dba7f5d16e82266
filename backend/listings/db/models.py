"""
Database models for property listings and their lookup tables
"""

import enum
from sqlalchemy import (
    BigInteger, Boolean, CheckConstraint, Column, DateTime, Enum, Float,
    ForeignKey, Integer, String, Text, func,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    """Base class for all models"""
    pass


class TimestampMixin:
    """Mixin for adding created_at and updated_at timestamps"""
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)


class Availability(str, enum.Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    SOLD = "sold"
    RENTED = "rented"
    OFF_MARKET = "off_market"
    UNDER_OFFER = "under_offer"
    OTHERS = "others"


class PropertyStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    UNPUBLISHED = "unpublished"
    DELETED = "deleted"


class Furnishing(str, enum.Enum):
    FURNISHED = "furnished"
    UNFURNISHED = "unfurnished"
    SEMI_FURNISHED = "semi_furnished"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class OfferingType(Base, TimestampMixin):
    """Offering type such as for-sale or for-rent"""
    __tablename__ = "offering_types"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)

    def __repr__(self):
        return f"<OfferingType(id={self.id}, slug={self.slug})>"


class PropertyType(Base, TimestampMixin):
    """Property type such as apartment or villa"""
    __tablename__ = "property_types"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)

    def __repr__(self):
        return f"<PropertyType(id={self.id}, slug={self.slug})>"


class City(Base, TimestampMixin):
    __tablename__ = "cities"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)

    def __repr__(self):
        return f"<City(id={self.id}, slug={self.slug})>"


class Community(Base, TimestampMixin):
    """Community (area) that listings are grouped and filtered by"""
    __tablename__ = "communities"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    short_name = Column(String, nullable=True)
    slug = Column(String, unique=True, nullable=False, index=True)
    city_id = Column(Integer, ForeignKey("cities.id"), nullable=True)

    city = relationship("City")
    sub_communities = relationship("SubCommunity", back_populates="community")

    def __repr__(self):
        return f"<Community(id={self.id}, slug={self.slug})>"


class SubCommunity(Base, TimestampMixin):
    __tablename__ = "sub_communities"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False)
    community_id = Column(Integer, ForeignKey("communities.id"), nullable=True)

    community = relationship("Community", back_populates="sub_communities")


class Agent(Base, TimestampMixin):
    """Listing agent shown on property cards"""
    __tablename__ = "agents"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)


class Developer(Base, TimestampMixin):
    __tablename__ = "developers"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False)


class Property(Base, TimestampMixin):
    """Property model representing a real-estate listing"""
    __tablename__ = "properties"
    __table_args__ = (
        CheckConstraint("price IS NULL OR price >= 0", name="ck_properties_price_non_negative"),
        CheckConstraint("size IS NULL OR size >= 0", name="ck_properties_size_non_negative"),
    )

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=True)
    name = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    price = Column(BigInteger, nullable=True)
    size = Column(Float, nullable=True)  # Square feet
    bedrooms = Column(Integer, nullable=True)
    bathrooms = Column(Integer, nullable=True)
    slug = Column(String, unique=True, nullable=False, index=True)
    reference_number = Column(String, nullable=True, index=True)
    permit_number = Column(String, nullable=True)

    availability = Column(Enum(Availability, values_callable=_enum_values), default=Availability.UNAVAILABLE, nullable=False)
    status = Column(Enum(PropertyStatus, values_callable=_enum_values), default=PropertyStatus.DRAFT, nullable=False)
    furnishing = Column(Enum(Furnishing, values_callable=_enum_values), nullable=True)

    is_luxe = Column(Boolean, default=False, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    is_exclusive = Column(Boolean, default=False, nullable=False)

    # Relationships
    offering_type_id = Column(Integer, ForeignKey("offering_types.id"), nullable=False, index=True)
    offering_type = relationship("OfferingType")

    property_type_id = Column(Integer, ForeignKey("property_types.id"), nullable=False, index=True)
    property_type = relationship("PropertyType")

    community_id = Column(Integer, ForeignKey("communities.id"), nullable=True, index=True)
    community = relationship("Community")

    sub_community_id = Column(Integer, ForeignKey("sub_communities.id"), nullable=True)
    sub_community = relationship("SubCommunity")

    city_id = Column(Integer, ForeignKey("cities.id"), nullable=True)
    city = relationship("City")

    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=True)
    agent = relationship("Agent")

    developer_id = Column(Integer, ForeignKey("developers.id"), nullable=True)
    developer = relationship("Developer")

    images = relationship(
        "PropertyImage",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="PropertyImage.order",
    )

    def __repr__(self):
        return f"<Property(id={self.id}, slug={self.slug})>"


class PropertyImage(Base, TimestampMixin):
    """Image attached to a property, shown in ascending display order"""
    __tablename__ = "property_images"
    __table_args__ = (
        CheckConstraint('"order" >= 0', name="ck_property_images_order_non_negative"),
    )

    id = Column(Integer, primary_key=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String, nullable=True)
    order = Column(Integer, default=0, nullable=False)

    property = relationship("Property", back_populates="images")

    def __repr__(self):
        return f"<PropertyImage(id={self.id}, property_id={self.property_id}, order={self.order})>"
