"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Email fields are plain strings: trimming, length caps and the strict
address rules are applied by the recovery workflow, so the API and the
domain cannot disagree about what is valid.
"""

from pydantic import BaseModel, Field


class RecoveryFormRequest(BaseModel):
    """Request model for an account recovery submission."""

    username: str = Field(..., description="Username of the account to recover")
    contact_email: str = Field(..., description="Address support should reply to")
    contact_email_confirm: str = Field(..., description="Same address again")
    registered_email: str | None = Field(
        default=None, description="Address you believe is registered on the account"
    )
    description: str | None = Field(default=None, description="Anything else support should know")


class FormField(BaseModel):
    """One field of the recovery form."""

    name: str
    type: str
    required: bool
    max_length: int


class RecoveryFormDescription(BaseModel):
    """Response model describing the recovery form."""

    message: str
    fields: list[FormField]
    confirmation_expires_in_seconds: int


class MessageResponse(BaseModel):
    """Response model for a successful step."""

    message_key: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
