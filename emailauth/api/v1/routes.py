"""
API v1 routes.

Defines the account recovery page:
- GET  /v1/AccountRecovery                  - Describe the form
- POST /v1/AccountRecovery                  - Submit a recovery request
- GET  /v1/AccountRecovery/confirm/{token}  - Follow the emailed link

Any other sub-path of the page falls through to the form description.
"""

import re

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from emailauth.api.dependencies import get_recovery_workflow, require_account_recovery
from emailauth.api.models import (
    ErrorResponse,
    FormField,
    MessageResponse,
    RecoveryFormDescription,
    RecoveryFormRequest,
)
from emailauth.config.settings import Settings, get_settings
from emailauth.domain.exceptions import RateLimited, RecoveryValidationError
from emailauth.domain.ports import ConfirmStatus, TicketOutcome
from emailauth.domain.recovery import (
    MAX_DESCRIPTION_LENGTH,
    MAX_EMAIL_LENGTH,
    MAX_USERNAME_LENGTH,
    RecoverySubmission,
    RecoveryWorkflow,
)

router = APIRouter(
    prefix="/AccountRecovery",
    tags=["v1"],
    dependencies=[Depends(require_account_recovery)],
)

CONFIRM_SUBPAGE = re.compile(r"^confirm/([0-9a-fA-F]+)$")

VALIDATION_MESSAGES = {
    "account-recovery-invalid-email": "Please enter a valid email address.",
    "account-recovery-email-mismatch": "The email addresses do not match.",
    "account-recovery-field-too-long": "One of the fields is too long.",
    "account-recovery-missing-field": "Please fill in all required fields.",
    "account-recovery-invalid-input": "The form contains invalid input.",
}

# status code and message for each failed ticket outcome
TICKET_ERRORS = {
    TicketOutcome.INVALID_DATA: (
        422,
        "Support could not accept the request because some of the data is invalid.",
    ),
    TicketOutcome.RATE_LIMITED: (
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Too many requests. Please try the same link again later.",
    ),
    TicketOutcome.SERVICE_UNAVAILABLE: (
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "The support system is currently unavailable. Please try the same link again later.",
    ),
    TicketOutcome.GENERIC_ERROR: (
        status.HTTP_502_BAD_GATEWAY,
        "Something went wrong while contacting support. Please try the same link again later.",
    ),
}


def _form_description(settings: Settings) -> RecoveryFormDescription:
    return RecoveryFormDescription(
        message="If you cannot log in to your account, tell us which account it is "
        "and how to reach you. We will email you a link to confirm the request.",
        fields=[
            FormField(name="username", type="user", required=True, max_length=MAX_USERNAME_LENGTH),
            FormField(name="contact_email", type="email", required=True, max_length=MAX_EMAIL_LENGTH),
            FormField(name="contact_email_confirm", type="email", required=True, max_length=MAX_EMAIL_LENGTH),
            FormField(name="registered_email", type="email", required=False, max_length=MAX_EMAIL_LENGTH),
            FormField(name="description", type="textarea", required=False, max_length=MAX_DESCRIPTION_LENGTH),
        ],
        confirmation_expires_in_seconds=settings.recovery_token_expiry_seconds,
    )


@router.get(
    "",
    response_model=RecoveryFormDescription,
    summary="Describe the account recovery form",
)
def recovery_form(settings: Settings = Depends(get_settings)) -> RecoveryFormDescription:
    return _form_description(settings)


@router.post(
    "",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        422: {"model": ErrorResponse, "description": "Validation error"},
        429: {"model": ErrorResponse, "description": "Rate limited"},
        502: {"model": ErrorResponse, "description": "Confirmation email could not be sent"},
    },
    summary="Submit an account recovery request",
    description="Validates the request, stores it and emails a confirmation link "
    "to the contact address. Nothing reaches support until the link is followed.",
)
def submit_recovery_request(
    request_data: RecoveryFormRequest,
    request: Request,
    workflow: RecoveryWorkflow = Depends(get_recovery_workflow),
) -> MessageResponse:
    client_key = request.client.host if request.client else "unknown"
    submission = RecoverySubmission(
        username=request_data.username,
        contact_email=request_data.contact_email,
        contact_email_confirm=request_data.contact_email_confirm,
        registered_email=request_data.registered_email,
        description=request_data.description,
    )

    try:
        accepted = workflow.submit(submission, client_key)
    except RateLimited:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
        ) from None
    except RecoveryValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=VALIDATION_MESSAGES.get(e.message_key, VALIDATION_MESSAGES["account-recovery-invalid-input"]),
        ) from None

    if not accepted.delivered:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="We could not send the confirmation email. Please try again later.",
        )

    return MessageResponse(
        message_key="account-recovery-confirmation-needed",
        message="Check your email for a link to confirm this request.",
    )


@router.get(
    "/{subpage:path}",
    response_model=MessageResponse | RecoveryFormDescription,
    responses={
        404: {"model": ErrorResponse, "description": "Invalid or expired link"},
        422: {"model": ErrorResponse, "description": "Ticket data rejected"},
        429: {"model": ErrorResponse, "description": "Rate limited"},
        502: {"model": ErrorResponse, "description": "Ticketing or email failure"},
        503: {"model": ErrorResponse, "description": "Ticketing unavailable"},
    },
    summary="Follow a confirmation link",
    description="confirm/{token} delivers the stashed request to support. "
    "Any other sub-path shows the form description.",
)
def recovery_subpage(
    subpage: str,
    response: Response,
    settings: Settings = Depends(get_settings),
    workflow: RecoveryWorkflow = Depends(get_recovery_workflow),
) -> MessageResponse | RecoveryFormDescription:
    match = CONFIRM_SUBPAGE.match(subpage)
    if match is None:
        return _form_description(settings)

    result = workflow.confirm(match.group(1))

    if result.status == ConfirmStatus.SUCCESS:
        return MessageResponse(
            message_key="account-recovery-success",
            message="Your request has been sent to our support team. They will contact you by email.",
        )

    if result.status == ConfirmStatus.RESENT:
        response.status_code = status.HTTP_202_ACCEPTED
        return MessageResponse(
            message_key="account-recovery-confirmation-resent",
            message="This link has expired. We have emailed you a new one.",
        )

    if result.status == ConfirmStatus.RESEND_FAILED:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"This link has expired and we could not send a new one: {result.error}",
        )

    if result.status == ConfirmStatus.TICKET_FAILED:
        code, detail = TICKET_ERRORS[result.ticket_outcome or TicketOutcome.GENERIC_ERROR]
        raise HTTPException(status_code=code, detail=detail)

    # Same answer for unknown, malformed and used tokens (no enumeration).
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="This link is invalid or has expired.",
    )
