"""FastAPI application for nearby attraction discovery."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

import config
from models import CityInfo, Coordinates, DiscoveryResult, PlaceDetails, SearchResult
from pipeline import DiscoveryPipeline, build_pipeline

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with httpx.AsyncClient() as http:
        app.state.pipeline = build_pipeline(http)
        logger.info("Discovery pipeline ready (cache backend: %s)", config.CACHE_BACKEND)
        yield
        await app.state.pipeline.close()


app = FastAPI(title="Nearby Discovery", version="1.0.0", lifespan=lifespan)

# CORS: allow frontend origin(s)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_pipeline(request: Request) -> DiscoveryPipeline:
    return request.app.state.pipeline


# ---------- Admin auth for write endpoints ----------

async def verify_admin(x_api_key: str = Header(default="")):
    """Protect write endpoints with an API key. No key configured = allow (local dev)."""
    admin_key = config.ADMIN_API_KEY
    if not admin_key:
        return
    if x_api_key != admin_key:
        raise HTTPException(403, "Invalid or missing API key")


def _parse_interests(interests: str) -> list[str]:
    return [i for i in interests.split(",") if i.strip()]


def _coords(lat: float, lon: float) -> Coordinates:
    return Coordinates(latitude=lat, longitude=lon)


# ---------- Health check ----------

@app.get("/health")
async def health():
    return {"status": "ok"}


# ---------- Geocoding ----------

@app.get("/search", response_model=list[SearchResult])
async def search(
    q: str = Query("", description="Free-text place query"),
    limit: int = Query(config.SEARCH_DEFAULT_LIMIT, ge=1, le=50),
    pipeline: DiscoveryPipeline = Depends(get_pipeline),
):
    return await pipeline.search(q, limit)


@app.get("/reverse", response_model=CityInfo)
async def reverse(
    lat: float = Query(..., ge=-90, le=90, description="Latitude"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude"),
    pipeline: DiscoveryPipeline = Depends(get_pipeline),
):
    city = await pipeline.reverse(_coords(lat, lon))
    if city is None:
        raise HTTPException(404, f"No place found at ({lat}, {lon})")
    return city


# ---------- Discovery ----------

@app.get("/attractions", response_model=DiscoveryResult)
async def attractions(
    lat: float = Query(..., ge=-90, le=90, description="Latitude"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude"),
    radius: float = Query(config.DEFAULT_RADIUS_M, gt=0, le=50_000, description="Search radius in meters"),
    interests: str = Query("", description="Comma-separated interest ids"),
    pipeline: DiscoveryPipeline = Depends(get_pipeline),
):
    return await pipeline.discover(
        _coords(lat, lon), _parse_interests(interests), radius, include_city=False,
    )


@app.get("/discover", response_model=DiscoveryResult)
async def discover(
    lat: float = Query(..., ge=-90, le=90, description="Latitude"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude"),
    interests: str = Query("", description="Comma-separated interest ids"),
    pipeline: DiscoveryPipeline = Depends(get_pipeline),
):
    return await pipeline.discover(_coords(lat, lon), _parse_interests(interests))


# ---------- Place details ----------

@app.get("/details", response_model=PlaceDetails)
async def details(
    name: str = Query(..., min_length=1, description="Place or attraction name"),
    interests: str = Query("", description="Comma-separated interest ids"),
    pipeline: DiscoveryPipeline = Depends(get_pipeline),
):
    return await pipeline.details(name, _parse_interests(interests))


@app.get("/city-image")
async def city_image(
    city: str = Query(..., min_length=1, description="City name"),
    pipeline: DiscoveryPipeline = Depends(get_pipeline),
):
    url = await pipeline.city_image(city)
    if url is None:
        raise HTTPException(404, f"No image found for {city}")
    return {"city": city, "image_url": url}


# ---------- Admin ----------

@app.delete("/cache", dependencies=[Depends(verify_admin)])
async def clear_cache(pipeline: DiscoveryPipeline = Depends(get_pipeline)):
    if not pipeline.clear_cache():
        raise HTTPException(500, "Cache could not be cleared")
    return {"message": "Cache cleared"}


# ---------- Config (read-only) ----------

@app.get("/config")
async def get_config():
    return {
        "default_radius_m": config.DEFAULT_RADIUS_M,
        "max_attractions": config.MAX_ATTRACTIONS,
        "search_min_interval_s": config.SEARCH_MIN_INTERVAL_S,
        "search_debounce_s": config.SEARCH_DEBOUNCE_S,
        "cache_ttl_ms": {
            "raw": config.RAW_TTL_MS,
            "ranked": config.RANKED_TTL_MS,
            "description": config.DESCRIPTION_TTL_MS,
        },
        "cache_backend": config.CACHE_BACKEND,
        "scoring_model": config.OPENAI_MODEL,
    }
