"""
PetServices Backend — Service Listing Schemas
==============================================

What:  The listing form (multipart fields of POST/PUT /services) and the
       listing response model.
How:   `ListingForm.parse()` runs the pydantic validators and re-raises
       failures as the application's ValidationError, so a bad form never
       reaches CatalogService.

Form coercion rules:
    nom, type, ville   required, stripped, non-empty
    type               vet | grooming | boarding | training | walking | other
    tarifs             leading number is kept ("45.50€" → 45.5), anything
                       non-numeric becomes 0, negative is rejected
    services, horaires optional free text, default ""
    statut             optional; en_attente | actif | inactif
"""

import math
import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from petservices.exceptions import ValidationError
from petservices.models.listing import LISTING_STATUSES, LISTING_TYPES

REQUIRED_FIELDS = ("nom", "type", "ville")

# Largest value a Numeric(10, 2) column holds
MAX_TARIFS = 99_999_999.99

# Leading decimal number, the way a lenient float parser reads "45.50€"
_LEADING_NUMBER = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def parse_tarifs(value: Any) -> float:
    """Lenient numeric parse; returns 0.0 when no number can be read."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _LEADING_NUMBER.match(str(value))
        if not match:
            return 0.0
        number = float(match.group(0))
    return number if math.isfinite(number) else 0.0


class ListingForm(BaseModel):
    nom: str = Field(max_length=255)
    type: str
    ville: str = Field(max_length=255)
    tarifs: float = 0.0
    services: str = ""
    horaires: str = ""
    statut: Optional[str] = None

    @field_validator("nom", "ville")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        value = v.strip().lower()
        if value not in LISTING_TYPES:
            raise ValueError(f"type must be one of: {', '.join(LISTING_TYPES)}")
        return value

    @field_validator("tarifs", mode="before")
    @classmethod
    def coerce_tarifs(cls, v: Any) -> float:
        number = parse_tarifs(v)
        if number < 0:
            raise ValueError("tarifs must not be negative")
        number = round(number, 2)
        if number > MAX_TARIFS:
            raise ValueError("tarifs is too large")
        return number

    @field_validator("services", "horaires", mode="before")
    @classmethod
    def default_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("statut", mode="before")
    @classmethod
    def validate_statut(cls, v: Any) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        value = str(v).strip().lower()
        if value not in LISTING_STATUSES:
            raise ValueError(f"statut must be one of: {', '.join(LISTING_STATUSES)}")
        return value

    @classmethod
    def parse(cls, **raw: Any) -> "ListingForm":
        """
        Build a form from raw multipart values.

        Raises:
            ValidationError: a required field is missing/blank or a value
                is out of range.
        """
        missing = [name for name in REQUIRED_FIELDS if not str(raw.get(name) or "").strip()]
        if missing:
            raise ValidationError(
                message="nom, type and ville are required",
                field=missing[0],
                context={"missing": missing},
            )

        try:
            return cls(**raw)
        except PydanticValidationError as e:
            error = e.errors()[0]
            field = str(error["loc"][0]) if error.get("loc") else None
            message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
            raise ValidationError(message=message, field=field)


class ListingResponse(BaseModel):
    id: int
    nom: str
    type: str
    ville: str
    tarifs: float
    services: Optional[str] = None
    horaires: Optional[str] = None
    statut: str
    image: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ListingCreatedResponse(BaseModel):
    success: bool = True
    service: ListingResponse


class ListingUpdatedResponse(BaseModel):
    success: bool = True
    message: str = "Service updated successfully"
    service: ListingResponse
