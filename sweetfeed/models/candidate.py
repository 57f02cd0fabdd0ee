from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Restaurant columns carried through as display metadata
DISPLAY_FIELDS = ("address", "cuisine_type", "price_range", "image_url", "yelp_place_id")


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """
    Rectangular geographic filter.

    Not geodesic: a fixed degree delta in both directions is an acceptable
    approximation at city scale.
    """

    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float

    @classmethod
    def around(cls, center: Coordinate, delta: float) -> "BoundingBox":
        """Build a box extending `delta` degrees on every side of `center`."""
        return cls(
            min_latitude=center.latitude - delta,
            max_latitude=center.latitude + delta,
            min_longitude=center.longitude - delta,
            max_longitude=center.longitude + delta,
        )

    def contains(self, point: Coordinate) -> bool:
        return (
            self.min_latitude <= point.latitude <= self.max_latitude
            and self.min_longitude <= point.longitude <= self.max_longitude
        )


@dataclass(frozen=True, slots=True)
class Candidate:
    """
    A restaurant eligible for presentation in the swipe feed.

    Attributes:
        id: Opaque unique identifier
        name: Display name
        rating: Rank key, highest first; None sorts last
        created_at: Stable secondary ordering key
        location: Coordinate if the restaurant has one
        metadata: Display-only fields (address, cuisine, image...), opaque to the feed
    """

    id: str
    name: str
    rating: float | None = None
    created_at: datetime | None = None
    location: Coordinate | None = None
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {
            "id": self.id,
            "name": self.name,
            "rating": self.rating,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "latitude": self.location.latitude if self.location else None,
            "longitude": self.location.longitude if self.location else None,
            **self.metadata,
        }
