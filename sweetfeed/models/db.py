"""
SQLAlchemy ORM models for persistent storage.

Mirrors the hosted backend schema: restaurants, per-user swipe history and
saved restaurants. Uniqueness on (user_id, restaurant_id) is what makes
decision recording idempotent.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class RestaurantDB(Base):
    """A dessert spot that can be served as a feed candidate."""

    __tablename__ = "restaurants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    name: Mapped[str] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    cuisine_type: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    price_range: Mapped[str | None] = mapped_column(String(8), nullable=True)
    rating: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    yelp_place_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<RestaurantDB(id={self.id}, name={self.name})>"


class SwipeHistoryDB(Base):
    """
    One swipe decision.

    action is "right" (saved) or "left" (skipped).
    """

    __tablename__ = "swipe_history"
    __table_args__ = (
        UniqueConstraint("user_id", "restaurant_id", name="uq_swipe_user_restaurant"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    restaurant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("restaurants.id", ondelete="CASCADE"), index=True
    )
    action: Mapped[str] = mapped_column(String(8))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<SwipeHistoryDB(user={self.user_id}, restaurant={self.restaurant_id})>"


class SavedRestaurantDB(Base):
    """A restaurant the user swiped right on."""

    __tablename__ = "saved_restaurants"
    __table_args__ = (
        UniqueConstraint("user_id", "restaurant_id", name="uq_saved_user_restaurant"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    restaurant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("restaurants.id", ondelete="CASCADE"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<SavedRestaurantDB(user={self.user_id}, restaurant={self.restaurant_id})>"
