"""
Pydantic schemas.

Request bodies keep "required" fields Optional on purpose: presence checks
live in crud.py so a missing name and an empty name get the same 400 and
the same message. Pydantic still rejects wrongly typed values.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional


class UserCreate(BaseModel):
    username: Optional[str] = Field(None, max_length=64)
    email: Optional[str] = Field(None, max_length=255)
    join_date: Optional[date] = None


class UserOut(BaseModel):
    user_id: int
    username: str
    email: str
    join_date: date

    class Config:
        from_attributes = True


class LocationIn(BaseModel):
    """Payload for creating or replacing a location."""
    location_name: Optional[str] = Field(None, max_length=255)
    region: Optional[str] = Field(None, max_length=255)
    pinpoint: Optional[str] = Field(None, max_length=255)
    is_secret: Optional[bool] = False
    lore: Optional[str] = None


class LocationOut(BaseModel):
    location_id: int
    location_name: str
    region: Optional[str] = None
    pinpoint: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_secret: bool = False
    lore: Optional[str] = None

    class Config:
        from_attributes = True


class OutingIn(BaseModel):
    """Payload for creating or replacing an outing. location_id 0/None means no spot."""
    user_id: Optional[int] = None
    location_id: Optional[int] = None
    outing_date: Optional[date] = None
    worth_returning: Optional[bool] = False
    field_notes: Optional[str] = None
    mvp_lure: Optional[str] = Field(None, max_length=255)


class OutingOut(BaseModel):
    outing_id: int
    user_id: int
    location_id: Optional[int] = None
    outing_date: date
    worth_returning: bool = False
    field_notes: Optional[str] = None
    mvp_lure: Optional[str] = None

    class Config:
        from_attributes = True


class CatchIn(BaseModel):
    outing_id: Optional[int] = None
    species: Optional[str] = Field(None, max_length=128)
    count: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class CatchOut(BaseModel):
    catch_id: int
    outing_id: int
    species: str
    count: int
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class OutingWithLocation(BaseModel):
    outing_id: int
    outing_date: date
    worth_returning: bool
    location_name: str
    region: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class FishCaught(BaseModel):
    """One row of the catch totals per location and species."""
    location_id: int
    location_name: str
    region: Optional[str] = None
    species: str
    total_caught: int


class BestSpot(BaseModel):
    location_id: int
    location_name: str
    region: Optional[str] = None
    total_caught: int


class OutingWeatherOut(BaseModel):
    """
    Normalized weather returned for an outing.
    source is "historical", "forecast" or "openweather".
    """
    outing_id: int
    source: str
    temperature: Optional[float] = None
    temperature_max: Optional[float] = None
    temperature_min: Optional[float] = None
    temperature_unit: str = "fahrenheit"
    conditions: str
    humidity: Optional[float] = None
    wind_speed: float = 0
    wind_direction: Optional[str] = None
    pressure: Optional[float] = None
    precipitation: Optional[float] = None
    fetched_at: datetime
