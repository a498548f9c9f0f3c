"""Pydantic v2 request/response schemas for the booking and validation APIs."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from codes_validation.config import MAIN_PLAN_ID


class CodeValidationRequest(BaseModel):
    """Body POSTed to the codes validate endpoint, once per code."""

    code: str = Field(..., min_length=1)
    main_plan_ids: list[int] = Field(default_factory=lambda: [MAIN_PLAN_ID])
    connectivity_mode: str = "offline"


class CartCreateRequest(BaseModel):
    """Body for creating a cart in the booking API."""

    session_id: int
    tickets: int = Field(..., ge=1)


class CartResponse(BaseModel):
    """Cart creation response; only the identifier is used."""

    id: int | str


class BookingResponse(BaseModel):
    """Response of the "book free" call."""

    ticket_id: int | str


class CodeRecord(BaseModel):
    """One entry of a ticket's code lookup."""

    code: str = Field(..., min_length=1)


class CodePoolFile(BaseModel):
    """On-disk representation of a provisioned pool."""

    generated_at: datetime | None = None
    codes: list[str]
