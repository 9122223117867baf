"""
FastAPI entrypoint.

This file focuses on:
- routing
- request/response handling
- wiring together DB + weather service + error responses
"""

from __future__ import annotations

from typing import List, Optional
import logging

from fastapi import FastAPI, Request, Depends, File, Form, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from sqlalchemy.orm import Session

from .settings import settings
from .db import Base, engine, get_db
from . import crud
from .crud import IMAGE_KINDS, ImageKind
from .errors import FishLogError, ValidationError
from .schemas import (
    BestSpot, CatchIn, CatchOut, FishCaught, LocationIn, LocationOut, OutingIn, OutingOut,
    OutingWeatherOut, OutingWithLocation, UserCreate, UserOut,
)
from .weather_clients import WeatherService
from .exporters import export_json, export_csv, export_markdown

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Create tables automatically (no migrations for a personal log).
Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Weather providers (constructed once).
weather_service = WeatherService.from_settings(settings)


def get_weather_service() -> WeatherService:
    """Dependency so tests can swap in providers backed by a mock transport."""
    return weather_service


@app.exception_handler(FishLogError)
async def fishlog_error_handler(request: Request, exc: FishLogError):
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(level, "%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)

    body = {"detail": exc.message}
    if exc.details:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


# -------------------------
# Users
# -------------------------

@app.get("/users", response_model=List[UserOut])
def api_list_users(db: Session = Depends(get_db)):
    return crud.list_users(db)


@app.post("/users", status_code=201)
def api_create_user(payload: UserCreate, db: Session = Depends(get_db)):
    """Sign-up: register a user so outings can be attached to them."""
    user = crud.create_user(db, payload)
    return {"message": "User created", "user_id": user.user_id}


@app.get("/users/{user_id}", response_model=UserOut)
def api_get_user(user_id: int, db: Session = Depends(get_db)):
    return crud.get_user(db, user_id)


# -------------------------
# Locations
# -------------------------

@app.post("/location", status_code=201)
@app.post("/locations", status_code=201)
def api_create_location(payload: LocationIn, db: Session = Depends(get_db)):
    """Create a spot; latitude/longitude are derived from the pinpoint."""
    loc = crud.create_location(db, payload)
    return {
        "message": "Location created",
        "location_id": loc.location_id,
        "latitude": loc.latitude,
        "longitude": loc.longitude,
    }


@app.get("/locations", response_model=List[LocationOut])
def api_list_locations(db: Session = Depends(get_db)):
    return crud.list_locations(db)


@app.get("/locations/{location_id}", response_model=LocationOut)
def api_get_location(location_id: int, db: Session = Depends(get_db)):
    return crud.get_location(db, location_id)


@app.put("/locations/{location_id}")
def api_update_location(location_id: int, payload: LocationIn, db: Session = Depends(get_db)):
    loc = crud.update_location(db, location_id, payload)
    return {"message": "Location updated", "latitude": loc.latitude, "longitude": loc.longitude}


@app.delete("/locations/{location_id}")
def api_delete_location(location_id: int, db: Session = Depends(get_db)):
    """Delete a spot. Outings that used it are kept with no location."""
    crud.delete_location(db, location_id)
    return {"message": "Location deleted"}


# -------------------------
# Outings
# -------------------------

@app.post("/outings", status_code=201)
def api_create_outing(payload: OutingIn, db: Session = Depends(get_db)):
    outing = crud.create_outing(db, payload)
    return {"message": "Outing created", "outing_id": outing.outing_id}


@app.get("/outings", response_model=List[OutingOut])
def api_list_outings(db: Session = Depends(get_db)):
    return crud.list_outings(db)


@app.get("/outings/export")
def api_export_outings(fmt: str = Query("json", pattern="^(json|csv|md)$"), db: Session = Depends(get_db)):
    """Export the whole log to JSON/CSV/Markdown."""
    entries = crud.list_log_entries(db)
    if fmt == "csv":
        return PlainTextResponse(export_csv(entries), media_type="text/csv")
    if fmt == "md":
        return PlainTextResponse(export_markdown(entries), media_type="text/markdown")
    return PlainTextResponse(export_json(entries), media_type="application/json")


@app.get("/outings/{outing_id}", response_model=OutingOut)
def api_get_outing(outing_id: int, db: Session = Depends(get_db)):
    return crud.get_outing(db, outing_id)


@app.put("/outings/{outing_id}")
def api_update_outing(outing_id: int, payload: OutingIn, db: Session = Depends(get_db)):
    crud.update_outing(db, outing_id, payload)
    return {"message": "Outing updated"}


@app.delete("/outings/{outing_id}")
def api_delete_outing(outing_id: int, db: Session = Depends(get_db)):
    """Delete an outing with its catches and every photo hanging off it."""
    crud.delete_outing(db, outing_id)
    return {"message": "Outing deleted"}


@app.get("/outings/{outing_id}/weather", response_model=OutingWeatherOut)
async def api_outing_weather(
    outing_id: int,
    db: Session = Depends(get_db),
    weather: WeatherService = Depends(get_weather_service),
):
    """
    On-demand weather for an outing.
    Past dates use the archive, today/future the forecast. Nothing is stored.
    """
    return await crud.get_outing_weather(db, outing_id, weather)


# -------------------------
# Catches
# -------------------------

@app.get("/outings/{outing_id}/catches", response_model=List[CatchOut])
def api_list_catches(outing_id: int, db: Session = Depends(get_db)):
    return crud.list_catches(db, outing_id)


@app.post("/catches", status_code=201)
def api_create_catch(payload: CatchIn, db: Session = Depends(get_db)):
    c = crud.create_catch(db, payload)
    return {"message": "Catch created", "catch_id": c.catch_id}


# -------------------------
# Images: /catch_images, /scenery_images, /location_images
# -------------------------

def _register_image_routes(kind: ImageKind) -> None:
    prefix = f"/{kind.name}_images"

    @app.get(prefix + "/{parent_id}", name=f"list_{kind.name}_images")
    def api_list_images(parent_id: int, db: Session = Depends(get_db)):
        return [crud.image_to_dict(kind, img) for img in crud.list_images(db, kind, parent_id)]

    @app.get(prefix + "/image/{image_id}", name=f"get_{kind.name}_image")
    def api_get_image(image_id: int, db: Session = Depends(get_db)):
        """Image record; uploaded bytes come back as a base64 data URI."""
        return crud.image_to_dict(kind, crud.get_image(db, kind, image_id), include_data=True)

    @app.get(prefix + "/image/{image_id}/file", name=f"get_{kind.name}_image_file")
    def api_get_image_file(image_id: int, db: Session = Depends(get_db)):
        """Raw image for <img src>; URL-only images redirect to their URL."""
        img = crud.get_image(db, kind, image_id)
        if img.image_data:
            return Response(content=img.image_data, media_type=img.image_type or "application/octet-stream")
        return RedirectResponse(img.image_url)

    @app.post(prefix, status_code=201, name=f"upload_{kind.name}_image")
    async def api_upload_image(
        parent_id: Optional[int] = Form(None, alias=kind.parent_key),
        image_url: Optional[str] = Form(None),
        caption: Optional[str] = Form(None),
        image: Optional[UploadFile] = File(None),
        db: Session = Depends(get_db),
    ):
        """Multipart upload: a file, a URL, or both."""
        data = None
        mime = None
        if image is not None:
            data = await image.read()
            mime = image.content_type
            if len(data) > settings.max_upload_bytes:
                raise ValidationError(f"Image is larger than {settings.max_upload_bytes} bytes")

        img = crud.create_image(db, kind, parent_id, image_url=image_url, image_data=data,
                                image_type=mime, caption=caption)
        return {"message": f"{kind.name.capitalize()} image uploaded", "image_id": img.image_id}


for _kind in IMAGE_KINDS.values():
    _register_image_routes(_kind)


# -------------------------
# Joins / insights
# -------------------------

@app.get("/outings_plus_locations", response_model=List[OutingWithLocation])
def api_outings_plus_locations(db: Session = Depends(get_db)):
    return crud.list_outings_with_locations(db)


@app.get("/fish_caught", response_model=List[FishCaught])
def api_fish_caught(db: Session = Depends(get_db)):
    """Catch totals by location and species."""
    return crud.fish_caught(db)


@app.get("/best_spots", response_model=List[BestSpot])
def api_best_spots(species: Optional[str] = None, db: Session = Depends(get_db)):
    """Best locations for one species; defaults to the configured species."""
    return crud.best_spots(db, species or settings.default_species)
