"""
FastAPI backend: owner contacts REST API and the public contact directory.
Run with uvicorn: uvicorn api.main:app --reload
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from repo root (when run from repo root or from Docker)
for path in (
    Path(__file__).resolve().parent.parent.parent / ".env",
    Path.cwd() / ".env",
):
    if path.exists():
        load_dotenv(path)
        break

from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from neo4j import GraphDatabase
from pydantic import BaseModel

from agenda.application import (
    ContactCreated,
    ContactListFilter,
    ContactPage,
    ContactSearch,
    ContactService,
    CreateContactInput,
    Duplicate,
    Invalid,
    UpdateContactInput,
)
from agenda.application.contact_search import DEFAULT_OVERFETCH_FACTOR
from agenda.application.dto import DEFAULT_PAGE_SIZE
from agenda.domain import Contact, DomainError, InvalidArgument, NotFound, Unauthorized
from agenda.infrastructure import InMemoryDocumentStore, Neo4jDocumentStore, phone_normalizer

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)

# Authenticated owner id, set by the auth gateway in front of this service.
USER_ID_HEADER = "X-User-Id"
MAX_PAGE_SIZE = int(os.environ.get("AGENDA_MAX_PAGE_SIZE", "100"))


def _get_driver():
    uri = os.environ.get("NEO4J_URI", "bolt://localhost:7687").strip()
    user = os.environ.get("NEO4J_USER", "neo4j").strip()
    password = os.environ.get("NEO4J_PASSWORD", "password").strip()
    return GraphDatabase.driver(uri, auth=(user, password))


def _build_store():
    backend = os.environ.get("AGENDA_STORE", "neo4j").strip().lower()
    if backend == "memory":
        return InMemoryDocumentStore()
    if backend == "neo4j":
        store = Neo4jDocumentStore(_get_driver())
        store.ensure_constraints()
        return store
    raise RuntimeError(f"Unknown AGENDA_STORE backend: {backend!r} (expected neo4j or memory)")


def _overfetch_factor() -> int:
    raw = os.environ.get("AGENDA_OVERFETCH_FACTOR", "").strip()
    return int(raw) if raw else DEFAULT_OVERFETCH_FACTOR


def _get_cached_store(app: FastAPI):
    if getattr(app.state, "store", None) is None:
        app.state.store = _build_store()
    return app.state.store


def get_service(app: FastAPI) -> ContactService:
    """One ContactService per app; it holds no per-request state."""
    if getattr(app.state, "service", None) is None:
        store = _get_cached_store(app)
        app.state.service = ContactService(
            store,
            search=ContactSearch(store, overfetch_factor=_overfetch_factor()),
            normalize_phone=phone_normalizer(os.environ.get("AGENDA_PHONE_REGION")),
        )
    return app.state.service


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.store = None
    app.state.service = None
    try:
        get_service(app)
        logger.info("Contact store ready: %s", type(app.state.store).__name__)
        yield
    finally:
        store = getattr(app.state, "store", None)
        if store is not None:
            store.close()
        app.state.store = None
        app.state.service = None


app = FastAPI(title="Agenda API", lifespan=lifespan)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if isinstance(exc, InvalidArgument):
        status_code = 400
    elif isinstance(exc, Unauthorized):
        status_code = 403
    elif isinstance(exc, NotFound):
        status_code = 404
    else:
        status_code = 500
        logger.error("Unhandled domain error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def _owner_id(x_user_id: str | None) -> str:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail=f"{USER_ID_HEADER} header is required")
    return user_id


# --- REST: health ---


@app.get("/health")
def health():
    return {"status": "ok"}


# --- Schemas ---


class LocationBody(BaseModel):
    latitude: float
    longitude: float


class AddressBody(BaseModel):
    street: str
    number: str
    city: str
    state: str
    zip_code: str
    neighborhood: str = ""
    complement: str | None = None
    country: str = "Brasil"
    latitude: float | None = None
    longitude: float | None = None


class CreateContactBody(BaseModel):
    name: str
    email: str
    phone: str | None = None
    is_public: bool = False
    category_id: str | None = None
    address: AddressBody | None = None
    location: LocationBody | None = None
    notes: str = ""
    slug: str | None = None
    is_favorite: bool = False


class UpdateContactBody(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    category_id: str | None = None
    address: AddressBody | None = None
    location: LocationBody | None = None
    notes: str | None = None
    is_public: bool | None = None
    slug: str | None = None
    is_favorite: bool | None = None
    remove_photo: bool = False


class ContactItem(BaseModel):
    id: str
    name: str
    email: str
    phone: str | None = None
    category_id: str | None = None
    slug: str | None = None
    location: LocationBody | None = None
    notes: str = ""
    is_favorite: bool = False
    is_public: bool = False
    photo_url: str | None = None
    created_at: str
    updated_at: str


class PublicContactItem(BaseModel):
    """Directory card: what anonymous callers may see of a public contact."""

    id: str
    name: str
    phone: str | None = None
    category_id: str | None = None
    slug: str | None = None
    location: LocationBody | None = None
    photo_url: str | None = None
    distance_km: float | None = None


class ContactPageResponse(BaseModel):
    items: list[ContactItem]
    next_cursor: str | None = None


class PublicContactPageResponse(BaseModel):
    items: list[PublicContactItem]
    next_cursor: str | None = None


def _iso(dt: datetime) -> str:
    return dt.isoformat()


def _location(contact: Contact) -> LocationBody | None:
    if contact.location is None:
        return None
    return LocationBody(
        latitude=contact.location.latitude,
        longitude=contact.location.longitude,
    )


def _contact_item(contact: Contact) -> ContactItem:
    return ContactItem(
        id=contact.id,
        name=contact.name,
        email=contact.email.value,
        phone=contact.phone,
        category_id=contact.category_id,
        slug=contact.slug.value if contact.slug else None,
        location=_location(contact),
        notes=contact.notes,
        is_favorite=contact.is_favorite,
        is_public=contact.is_public,
        photo_url=contact.photo_url,
        created_at=_iso(contact.created_at),
        updated_at=_iso(contact.updated_at),
    )


def _public_item(contact: Contact, distance_km: float | None = None) -> PublicContactItem:
    return PublicContactItem(
        id=contact.id,
        name=contact.name,
        phone=contact.phone,
        category_id=contact.category_id,
        slug=contact.slug.value if contact.slug else None,
        location=_location(contact),
        photo_url=contact.photo_url,
        distance_km=round(distance_km, 3) if distance_km is not None else None,
    )


def _page_response(page: ContactPage) -> ContactPageResponse:
    return ContactPageResponse(
        items=[_contact_item(c) for c in page.items],
        next_cursor=page.next_cursor,
    )


def _public_page_response(page: ContactPage) -> PublicContactPageResponse:
    return PublicContactPageResponse(
        items=[_public_item(c) for c in page.items],
        next_cursor=page.next_cursor,
    )


def _address_dict(body: AddressBody | None) -> dict | None:
    if body is None:
        return None
    data = body.model_dump()
    data["zipCode"] = data.pop("zip_code")
    return data


# --- REST: owner contacts ---


@app.post("/contacts")
def create_contact(
    body: CreateContactBody,
    request: Request,
    x_user_id: str | None = Header(None, alias=USER_ID_HEADER),
):
    service = get_service(request.app)
    result = service.create_contact(
        CreateContactInput(
            owner_id=_owner_id(x_user_id),
            name=body.name,
            email=body.email,
            phone=body.phone,
            is_public=body.is_public,
            category_id=body.category_id,
            address=_address_dict(body.address),
            location=body.location.model_dump() if body.location else None,
            notes=body.notes,
            slug=body.slug,
            is_favorite=body.is_favorite,
        )
    )
    if isinstance(result, Invalid):
        raise HTTPException(status_code=400, detail=result.reason)
    if isinstance(result, Duplicate):
        raise HTTPException(status_code=409, detail="Contact already exists")
    if not isinstance(result, ContactCreated):
        raise HTTPException(status_code=400, detail="Failed to create contact")
    return JSONResponse(
        content=_contact_item(result.contact).model_dump(),
        status_code=201,
    )


@app.get("/contacts")
def list_contacts(
    request: Request,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    cursor: str | None = None,
    category_id: str | None = None,
    search: str | None = None,
    x_user_id: str | None = Header(None, alias=USER_ID_HEADER),
) -> ContactPageResponse:
    service = get_service(request.app)
    page = service.list_contacts(
        _owner_id(x_user_id),
        ContactListFilter(category_id=category_id, search=search, limit=limit, cursor=cursor),
    )
    return _page_response(page)


@app.get("/contacts/favorites")
def list_favorites(
    request: Request,
    x_user_id: str | None = Header(None, alias=USER_ID_HEADER),
) -> list[ContactItem]:
    service = get_service(request.app)
    return [_contact_item(c) for c in service.list_favorites(_owner_id(x_user_id))]


@app.get("/contacts/{contact_id}")
def get_contact(
    contact_id: str,
    request: Request,
    x_user_id: str | None = Header(None, alias=USER_ID_HEADER),
) -> ContactItem:
    service = get_service(request.app)
    return _contact_item(service.get_contact(contact_id, _owner_id(x_user_id)))


@app.patch("/contacts/{contact_id}")
def update_contact(
    contact_id: str,
    body: UpdateContactBody,
    request: Request,
    x_user_id: str | None = Header(None, alias=USER_ID_HEADER),
) -> ContactItem:
    service = get_service(request.app)
    contact = service.update_contact(
        UpdateContactInput(
            contact_id=contact_id,
            owner_id=_owner_id(x_user_id),
            name=body.name,
            email=body.email,
            phone=body.phone,
            category_id=body.category_id,
            address=_address_dict(body.address),
            location=body.location.model_dump() if body.location else None,
            notes=body.notes,
            is_public=body.is_public,
            slug=body.slug,
            is_favorite=body.is_favorite,
            remove_photo=body.remove_photo,
        )
    )
    return _contact_item(contact)


@app.delete("/contacts/{contact_id}", status_code=204)
def delete_contact(
    contact_id: str,
    request: Request,
    x_user_id: str | None = Header(None, alias=USER_ID_HEADER),
):
    service = get_service(request.app)
    service.delete_contact(contact_id, _owner_id(x_user_id))
    return Response(status_code=204)


# --- REST: public directory ---


@app.get("/public/contacts")
def search_public_contacts(
    request: Request,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    cursor: str | None = None,
    category_id: str | None = None,
    search: str | None = None,
    lat: float | None = None,
    lon: float | None = None,
    radius_km: float | None = None,
) -> PublicContactPageResponse:
    service = get_service(request.app)
    page = service.list_public_contacts(
        ContactListFilter(
            category_id=category_id,
            search=search,
            latitude=lat,
            longitude=lon,
            radius_km=radius_km,
            limit=limit,
            cursor=cursor,
        )
    )
    return _public_page_response(page)


@app.get("/public/contacts/nearby")
def nearby_contacts(
    request: Request,
    lat: float,
    lon: float,
    radius_km: float,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> list[PublicContactItem]:
    service = get_service(request.app)
    return [
        _public_item(n.contact, distance_km=n.distance_km)
        for n in service.find_nearby(lat, lon, radius_km, limit)
    ]


@app.get("/public/contacts/{slug}")
def get_public_contact(slug: str, request: Request) -> PublicContactItem:
    service = get_service(request.app)
    contact = service.find_by_slug(slug)
    if contact is None:
        raise HTTPException(status_code=404, detail="Contact not found")
    return _public_item(contact)
