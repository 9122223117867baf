"""
CRUD functions.

Routing stays in main.py; everything that touches the database lives here:
- presence checks for required fields (ValidationError)
- lookups that raise NotFoundError
- cascade deletes, each inside a single transaction
- the two insight aggregates
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Type
import base64
import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .errors import ConstraintError, NotFoundError, ValidationError
from .schemas import CatchIn, LocationIn, OutingIn, UserCreate
from .weather_clients import WeatherService, parse_pinpoint, resolve_coordinates

logger = logging.getLogger(__name__)


def _constraint_error(db: Session, exc: IntegrityError) -> ConstraintError:
    """Roll back the whole transaction and wrap the database's message."""
    db.rollback()
    message = str(exc.orig)
    logger.error("Database rejected write: %s", message)
    return ConstraintError(message, details={"database": message})


def _commit(db: Session) -> None:
    """Commit, turning integrity failures into ConstraintError."""
    try:
        db.commit()
    except IntegrityError as exc:
        raise _constraint_error(db, exc)


def _get_or_404(db: Session, model, pk: int, label: str):
    obj = db.get(model, pk)
    if obj is None:
        raise NotFoundError(f"{label} not found")
    return obj


# -------------------------
# Users
# -------------------------

def create_user(db: Session, payload: UserCreate) -> models.User:
    if not payload.username or not payload.email:
        raise ValidationError("Username and email are required")

    user = models.User(
        username=payload.username,
        email=payload.email,
        join_date=payload.join_date or date.today(),
    )
    db.add(user)
    _commit(db)
    db.refresh(user)
    return user


def list_users(db: Session) -> List[models.User]:
    return list(db.scalars(select(models.User).order_by(models.User.user_id)))


def get_user(db: Session, user_id: int) -> models.User:
    return _get_or_404(db, models.User, user_id, "User")


# -------------------------
# Locations
# -------------------------

def _apply_location(location: models.Location, payload: LocationIn) -> None:
    """Copy fields over and re-derive coordinates from the pinpoint."""
    coords = parse_pinpoint(payload.pinpoint)
    location.location_name = payload.location_name
    location.region = payload.region
    location.pinpoint = payload.pinpoint
    location.latitude = coords[0] if coords else None
    location.longitude = coords[1] if coords else None
    location.is_secret = bool(payload.is_secret)
    location.lore = payload.lore


def create_location(db: Session, payload: LocationIn) -> models.Location:
    if not payload.location_name:
        raise ValidationError("Must name the spot")

    location = models.Location()
    _apply_location(location, payload)
    db.add(location)
    _commit(db)
    db.refresh(location)
    return location


def list_locations(db: Session) -> List[models.Location]:
    return list(db.scalars(select(models.Location).order_by(models.Location.location_id)))


def get_location(db: Session, location_id: int) -> models.Location:
    return _get_or_404(db, models.Location, location_id, "Location")


def update_location(db: Session, location_id: int, payload: LocationIn) -> models.Location:
    if not payload.location_name:
        raise ValidationError("Location name is required")

    location = get_location(db, location_id)
    _apply_location(location, payload)
    _commit(db)
    db.refresh(location)
    return location


def delete_location(db: Session, location_id: int) -> None:
    """
    DELETE location:
    - detach outings that point at it (they survive, with no location)
    - delete its images
    - delete the location
    One commit covers all three steps.
    """
    get_location(db, location_id)

    try:
        detached = db.execute(
            update(models.Outing)
            .where(models.Outing.location_id == location_id)
            .values(location_id=None)
            .execution_options(synchronize_session=False)
        ).rowcount
        images = db.execute(
            delete(models.LocationImage)
            .where(models.LocationImage.location_id == location_id)
            .execution_options(synchronize_session=False)
        ).rowcount
        db.execute(
            delete(models.Location)
            .where(models.Location.location_id == location_id)
            .execution_options(synchronize_session=False)
        )
    except IntegrityError as exc:
        raise _constraint_error(db, exc)
    _commit(db)

    logger.info(
        "Deleted location %s (detached %s outings, removed %s images)",
        location_id, detached, images,
    )


# -------------------------
# Outings
# -------------------------

def _apply_outing(outing: models.Outing, payload: OutingIn) -> None:
    outing.user_id = payload.user_id
    outing.location_id = payload.location_id or None
    outing.outing_date = payload.outing_date
    outing.worth_returning = bool(payload.worth_returning)
    outing.field_notes = payload.field_notes
    outing.mvp_lure = payload.mvp_lure


def create_outing(db: Session, payload: OutingIn) -> models.Outing:
    if not payload.user_id or not payload.outing_date:
        raise ValidationError("User's ID and the date are required")

    outing = models.Outing()
    _apply_outing(outing, payload)
    db.add(outing)
    _commit(db)
    db.refresh(outing)
    return outing


def list_outings(db: Session) -> List[models.Outing]:
    return list(db.scalars(select(models.Outing).order_by(models.Outing.outing_id)))


def get_outing(db: Session, outing_id: int) -> models.Outing:
    return _get_or_404(db, models.Outing, outing_id, "Outing")


def update_outing(db: Session, outing_id: int, payload: OutingIn) -> models.Outing:
    if not payload.user_id or not payload.outing_date:
        raise ValidationError("User's ID and the date are required")

    outing = get_outing(db, outing_id)
    _apply_outing(outing, payload)
    _commit(db)
    db.refresh(outing)
    return outing


def delete_outing(db: Session, outing_id: int) -> None:
    """
    DELETE outing, children first:
    catch images -> catches -> scenery images -> outing.
    One commit covers every step, so a failure leaves nothing half-deleted.
    """
    get_outing(db, outing_id)

    catch_ids = select(models.Catch.catch_id).where(models.Catch.outing_id == outing_id)
    try:
        catch_images = db.execute(
            delete(models.CatchImage)
            .where(models.CatchImage.catch_id.in_(catch_ids))
            .execution_options(synchronize_session=False)
        ).rowcount
        catches = db.execute(
            delete(models.Catch)
            .where(models.Catch.outing_id == outing_id)
            .execution_options(synchronize_session=False)
        ).rowcount
        scenery = db.execute(
            delete(models.SceneryImage)
            .where(models.SceneryImage.outing_id == outing_id)
            .execution_options(synchronize_session=False)
        ).rowcount
        db.execute(
            delete(models.Outing)
            .where(models.Outing.outing_id == outing_id)
            .execution_options(synchronize_session=False)
        )
    except IntegrityError as exc:
        raise _constraint_error(db, exc)
    _commit(db)

    logger.info(
        "Deleted outing %s (%s catches, %s catch images, %s scenery images)",
        outing_id, catches, catch_images, scenery,
    )


def list_outings_with_locations(db: Session) -> List[Dict[str, Any]]:
    """Outings that have a spot, with the spot's name, region and coordinates."""
    stmt = (
        select(
            models.Outing.outing_id,
            models.Outing.outing_date,
            models.Outing.worth_returning,
            models.Location.location_name,
            models.Location.region,
            models.Location.latitude,
            models.Location.longitude,
        )
        .join(models.Location, models.Outing.location_id == models.Location.location_id)
        .order_by(models.Outing.outing_id)
    )
    return [dict(row._mapping) for row in db.execute(stmt)]


# -------------------------
# Catches
# -------------------------

def list_catches(db: Session, outing_id: int) -> List[models.Catch]:
    return list(db.scalars(
        select(models.Catch)
        .where(models.Catch.outing_id == outing_id)
        .order_by(models.Catch.catch_id)
    ))


def create_catch(db: Session, payload: CatchIn) -> models.Catch:
    if not payload.outing_id or not payload.species:
        raise ValidationError("Outing ID and species are required")

    catch = models.Catch(
        outing_id=payload.outing_id,
        species=payload.species,
        count=payload.count or 1,
        notes=payload.notes or None,
    )
    db.add(catch)
    _commit(db)
    db.refresh(catch)
    return catch


# -------------------------
# Images (catch, scenery, location)
# -------------------------

@dataclass(frozen=True)
class ImageKind:
    """How one family of photos hangs off its parent table."""
    name: str
    model: Type[Any]
    parent_model: Type[Any]
    parent_key: str
    parent_label: str

    @property
    def parent_column(self):
        return getattr(self.model, self.parent_key)


IMAGE_KINDS: Dict[str, ImageKind] = {
    "catch": ImageKind("catch", models.CatchImage, models.Catch, "catch_id", "Catch"),
    "scenery": ImageKind("scenery", models.SceneryImage, models.Outing, "outing_id", "Outing"),
    "location": ImageKind("location", models.LocationImage, models.Location, "location_id", "Location"),
}


def image_to_dict(kind: ImageKind, image, include_data: bool = False) -> Dict[str, Any]:
    """
    Listing shape by default. With include_data, uploaded bytes come back as a
    data URI in image_data (and image_url is null); URL-only images keep their URL.
    """
    out = {
        "image_id": image.image_id,
        kind.parent_key: getattr(image, kind.parent_key),
        "image_url": image.image_url,
        "image_type": image.image_type,
        "caption": image.caption,
        "uploaded_at": image.uploaded_at,
    }
    if include_data:
        if image.image_data:
            encoded = base64.b64encode(image.image_data).decode("ascii")
            out["image_url"] = None
            out["image_data"] = f"data:{image.image_type};base64,{encoded}"
        else:
            out["image_data"] = None
    return out


def list_images(db: Session, kind: ImageKind, parent_id: int) -> List[Any]:
    return list(db.scalars(
        select(kind.model)
        .where(kind.parent_column == parent_id)
        .order_by(kind.model.image_id)
    ))


def get_image(db: Session, kind: ImageKind, image_id: int):
    return _get_or_404(db, kind.model, image_id, "Image")


def create_image(
    db: Session,
    kind: ImageKind,
    parent_id: Optional[int],
    image_url: Optional[str] = None,
    image_data: Optional[bytes] = None,
    image_type: Optional[str] = None,
    caption: Optional[str] = None,
):
    if not parent_id:
        raise ValidationError(f"{kind.parent_label} ID is required")
    if not image_url and not image_data:
        raise ValidationError("Either image URL or file upload is required")
    _get_or_404(db, kind.parent_model, parent_id, kind.parent_label)

    image = kind.model(
        image_url=image_url or None,
        image_data=image_data or None,
        image_type=(image_type or "application/octet-stream") if image_data else None,
        caption=caption or None,
    )
    setattr(image, kind.parent_key, parent_id)
    db.add(image)
    _commit(db)
    db.refresh(image)
    return image


# -------------------------
# Insights
# -------------------------

def fish_caught(db: Session) -> List[Dict[str, Any]]:
    """Total fish caught per location and species."""
    total = func.sum(models.Catch.count).label("total_caught")
    stmt = (
        select(
            models.Location.location_id,
            models.Location.location_name,
            models.Location.region,
            models.Catch.species,
            total,
        )
        .select_from(models.Location)
        .join(models.Outing, models.Outing.location_id == models.Location.location_id)
        .join(models.Catch, models.Catch.outing_id == models.Outing.outing_id)
        .group_by(
            models.Location.location_id,
            models.Location.location_name,
            models.Location.region,
            models.Catch.species,
        )
        .order_by(models.Location.location_name, models.Catch.species)
    )
    return [dict(row._mapping) for row in db.execute(stmt)]


def best_spots(db: Session, species: str) -> List[Dict[str, Any]]:
    """Locations ranked by how many of one species were caught there (case-insensitive)."""
    total = func.sum(models.Catch.count).label("total_caught")
    stmt = (
        select(
            models.Location.location_id,
            models.Location.location_name,
            models.Location.region,
            total,
        )
        .select_from(models.Location)
        .join(models.Outing, models.Outing.location_id == models.Location.location_id)
        .join(models.Catch, models.Catch.outing_id == models.Outing.outing_id)
        .where(func.lower(models.Catch.species) == species.lower())
        .group_by(models.Location.location_id, models.Location.location_name, models.Location.region)
        .order_by(total.desc(), models.Location.location_name)
    )
    return [dict(row._mapping) for row in db.execute(stmt)]


# -------------------------
# Export
# -------------------------

def list_log_entries(db: Session) -> List[Dict[str, Any]]:
    """Every outing, newest first, with its spot and catches."""
    stmt = (
        select(models.Outing, models.Location.location_name, models.Location.region)
        .outerjoin(models.Location, models.Outing.location_id == models.Location.location_id)
        .order_by(models.Outing.outing_date.desc(), models.Outing.outing_id.desc())
    )
    rows = db.execute(stmt).all()

    catches_by_outing: Dict[int, List[Dict[str, Any]]] = {}
    for c in db.scalars(select(models.Catch).order_by(models.Catch.catch_id)):
        catches_by_outing.setdefault(c.outing_id, []).append({"species": c.species, "count": c.count})

    entries = []
    for outing, location_name, region in rows:
        catches = catches_by_outing.get(outing.outing_id, [])
        entries.append({
            "outing_id": outing.outing_id,
            "outing_date": outing.outing_date,
            "location_name": location_name,
            "region": region,
            "worth_returning": outing.worth_returning,
            "mvp_lure": outing.mvp_lure,
            "total_caught": sum(c["count"] for c in catches),
            "catches": catches,
            "field_notes": outing.field_notes,
        })
    return entries


# -------------------------
# Weather
# -------------------------

async def get_outing_weather(
    db: Session,
    outing_id: int,
    weather: WeatherService,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Weather for an outing:
    - resolve the outing's date and its location's coordinates
    - let the weather service pick historical vs forecast
    - return the normalized record (never stored)
    """
    stmt = (
        select(
            models.Outing.outing_id,
            models.Outing.outing_date,
            models.Location.location_id,
            models.Location.pinpoint,
            models.Location.latitude,
            models.Location.longitude,
        )
        .outerjoin(models.Location, models.Outing.location_id == models.Location.location_id)
        .where(models.Outing.outing_id == outing_id)
    )
    row = db.execute(stmt).first()
    if row is None:
        raise NotFoundError("Outing not found")
    if not row.outing_date:
        raise ValidationError("Cannot fetch weather: outing must have a date")
    if row.location_id is None:
        raise ValidationError(
            "Cannot fetch weather: outing must have a location. "
            "Add a location with coordinates (lat,lng)."
        )

    lat, lon = resolve_coordinates(row.latitude, row.longitude, row.pinpoint)
    report = await weather.weather_for(row.outing_date, lat, lon, today=today)

    out = report.to_dict()
    out["outing_id"] = row.outing_id
    out["fetched_at"] = datetime.utcnow()
    return out
