"""GOBL envelope models and strict decoding."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

ENVELOPE_SCHEMA = "https://gobl.org/draft-0/envelope"
SCHEMA_PREFIX = "https://gobl.org/draft-0/"

# Document schemas registered in GOBL draft-0
DOCUMENT_SCHEMAS = frozenset(
    {
        "bill/invoice",
        "bill/order",
        "bill/delivery",
        "bill/payment",
        "note/message",
        "org/party",
        "org/item",
        "org/note",
        "org/address",
        "currency/exchange-rate",
    }
)


class EnvelopeError(ValueError):
    """Raised when request bytes are not a valid GOBL envelope."""


class Digest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    alg: str
    val: str


class Stamp(BaseModel):
    model_config = ConfigDict(extra="forbid")

    prv: str
    val: str


class Header(BaseModel):
    model_config = ConfigDict(extra="forbid")

    uuid: UUID
    dig: Digest
    stamps: list[Stamp] = Field(default_factory=list)
    links: list[dict[str, Any]] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    meta: dict[str, str] = Field(default_factory=dict)
    notes: str | None = None
    draft: bool = False


class Document(BaseModel):
    """The wrapped business document.

    Only `$schema` is checked here, against DOCUMENT_SCHEMAS; the remaining
    fields are schema specific and kept untouched for the templates (see `fields`).
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_: str = Field(alias="$schema")

    @field_validator("schema_")
    @classmethod
    def _known_schema(cls, v: str) -> str:
        if not v.startswith(SCHEMA_PREFIX) or v[len(SCHEMA_PREFIX):] not in DOCUMENT_SCHEMAS:
            raise ValueError(f"unknown document schema {v!r}")
        return v

    @property
    def kind(self) -> str:
        """Schema path below the draft prefix, e.g. ``bill/invoice``."""
        return self.schema_[len(SCHEMA_PREFIX):]

    @property
    def fields(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class Envelope(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    schema_: str = Field(alias="$schema")
    head: Header
    doc: Document
    sigs: list[str] = Field(default_factory=list)

    @field_validator("schema_")
    @classmethod
    def _envelope_schema(cls, v: str) -> str:
        if v != ENVELOPE_SCHEMA:
            raise ValueError(f"expected {ENVELOPE_SCHEMA!r}, got {v!r}")
        return v


def decode(data: bytes) -> Envelope:
    """Parse and validate raw JSON bytes into an Envelope.

    Malformed JSON and schema violations both raise EnvelopeError; unknown
    envelope or header keys are rejected rather than ignored.
    """
    try:
        return Envelope.model_validate_json(data)
    except ValidationError as e:
        raise EnvelopeError(_describe(e)) from e


def _describe(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalid")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)
