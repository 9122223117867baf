"""
ORM models.

Tables mirror the fishing log:
- users own outings
- outings optionally point at a location and hold catches + scenery photos
- catches hold their own photos
- locations hold their own photos

Primary keys are named after the table (location_id, outing_id, ...) because
clients address rows by those names.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean, Date, DateTime, Float, ForeignKey, Integer, LargeBinary, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(64), unique=True)
    email: Mapped[str] = mapped_column(String(255), unique=True)
    join_date: Mapped[date] = mapped_column(Date, default=date.today)


class Location(Base):
    __tablename__ = "locations"

    location_id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    location_name: Mapped[str] = mapped_column(String(255))
    region: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # What the user typed, e.g. "45.5,-122.6"; kept even when it does not parse
    pinpoint: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # Derived from pinpoint on every write; null when pinpoint is unusable
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    is_secret: Mapped[bool] = mapped_column(Boolean, default=False)
    lore: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Outing(Base):
    __tablename__ = "outings"

    outing_id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), index=True)
    location_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("locations.location_id"), nullable=True, index=True
    )
    outing_date: Mapped[date] = mapped_column(Date)
    worth_returning: Mapped[bool] = mapped_column(Boolean, default=False)
    field_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mvp_lure: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class Catch(Base):
    __tablename__ = "catches"

    catch_id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    outing_id: Mapped[int] = mapped_column(ForeignKey("outings.outing_id"), index=True)
    species: Mapped[str] = mapped_column(String(128), index=True)
    count: Mapped[int] = mapped_column(Integer, default=1)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class _ImageColumns:
    """
    Shared photo columns.

    A row carries a public URL, an uploaded payload (+ MIME type), or both.
    """
    image_id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    image_data: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)
    image_type: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    caption: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class CatchImage(_ImageColumns, Base):
    __tablename__ = "catch_images"

    catch_id: Mapped[int] = mapped_column(ForeignKey("catches.catch_id"), index=True)


class SceneryImage(_ImageColumns, Base):
    __tablename__ = "scenery_images"

    outing_id: Mapped[int] = mapped_column(ForeignKey("outings.outing_id"), index=True)


class LocationImage(_ImageColumns, Base):
    __tablename__ = "location_images"

    location_id: Mapped[int] = mapped_column(ForeignKey("locations.location_id"), index=True)
