"""Value objects shared by contact entities: Email, Slug, Address."""

import re
import unicodedata
from collections.abc import Mapping
from dataclasses import dataclass

from agenda.domain.errors import InvalidArgument
from agenda.domain.geo import GeoLocation

EMAIL_MAX_LENGTH = 254
SLUG_MAX_LENGTH = 100

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class Email:
    """Lower-cased, syntactically valid e-mail address."""

    value: str

    def __post_init__(self):
        value = (self.value or "").strip().lower()
        if not value:
            raise InvalidArgument("Email must be non-empty.")
        if len(value) > EMAIL_MAX_LENGTH or not _EMAIL_PATTERN.match(value):
            raise InvalidArgument(f"Invalid email address: {self.value}")
        object.__setattr__(self, "value", value)

    def __str__(self) -> str:
        return self.value


def _fold_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _slugify(text: str) -> str:
    slug = _fold_accents(text or "").lower()
    return _NON_SLUG_CHARS.sub("-", slug).strip("-")


@dataclass(frozen=True)
class Slug:
    """URL-friendly identifier of a public contact (e.g. "maria-jose-3fa9c1")."""

    value: str

    def __post_init__(self):
        if not self.value:
            raise InvalidArgument("Slug cannot be empty.")
        if len(self.value) > SLUG_MAX_LENGTH:
            raise InvalidArgument(f"Slug cannot exceed {SLUG_MAX_LENGTH} characters.")
        if not _SLUG_PATTERN.match(self.value):
            raise InvalidArgument(f"Invalid slug format: {self.value}")

    @classmethod
    def from_text(cls, text: str) -> "Slug":
        """Fold accents, lower-case and hyphenate arbitrary text."""
        return cls(_slugify(text))

    @classmethod
    def with_suffix(cls, text: str, suffix: str) -> "Slug":
        """Slug of text followed by suffix, truncated to fit SLUG_MAX_LENGTH.

        Falls back to the suffix alone when text has no slug characters.
        """
        suffix = _slugify(suffix)
        base = _slugify(text)[: SLUG_MAX_LENGTH - len(suffix) - 1].strip("-")
        return cls(f"{base}-{suffix}" if base else suffix)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Address:
    """Postal address. Coordinates, when known, are kept as a GeoLocation."""

    street: str
    number: str
    city: str
    state: str
    zip_code: str
    neighborhood: str = ""
    complement: str | None = None
    country: str = "Brasil"
    location: GeoLocation | None = None

    def __post_init__(self):
        for name in ("street", "number", "city", "state", "neighborhood", "country"):
            object.__setattr__(self, name, (getattr(self, name) or "").strip())
        object.__setattr__(self, "complement", (self.complement or "").strip() or None)
        object.__setattr__(self, "zip_code", re.sub(r"\D", "", self.zip_code or ""))
        for name in ("street", "number", "city", "state", "zip_code"):
            if not getattr(self, name):
                raise InvalidArgument(f"Address {name.replace('_', ' ')} cannot be empty.")

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Address":
        location = None
        if data.get("latitude") is not None and data.get("longitude") is not None:
            location = GeoLocation.from_dict(data)
        return cls(
            street=str(data.get("street") or ""),
            number=str(data.get("number") or ""),
            city=str(data.get("city") or ""),
            state=str(data.get("state") or ""),
            zip_code=str(data.get("zipCode") or data.get("zip_code") or ""),
            neighborhood=str(data.get("neighborhood") or ""),
            complement=data.get("complement") or None,
            country=str(data.get("country") or "Brasil"),
            location=location,
        )

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "street": self.street,
            "number": self.number,
            "complement": self.complement,
            "neighborhood": self.neighborhood,
            "city": self.city,
            "state": self.state,
            "zipCode": self.zip_code,
            "country": self.country,
        }
        if self.location is not None:
            data.update(self.location.to_dict())
        return data
