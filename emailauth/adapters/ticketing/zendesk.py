"""
Zendesk ticketing adapter - Implements TicketingGateway protocol.

Creates a Zendesk request (end-user ticket) for each confirmed account
recovery request via the Requests API:
https://developer.zendesk.com/api-reference/ticketing/tickets/ticket-requests/#create-request

Outcome mapping (first match wins):
1. 2xx                                -> CREATED
2. 429                                -> RATE_LIMITED (body may not be JSON)
3. 4xx with a JSON body               -> mapped from the "error" code
4. anything else, transport failures  -> GENERIC_ERROR

Response bodies are never logged verbatim; unknown failures are logged
with the body length and its SHA-256 so support can correlate reports.
"""

import hashlib
import logging
from typing import Any

import httpx

from emailauth.config.settings import CustomFieldTemplate, Settings
from emailauth.domain.pending import RecoveryTicketRequest
from emailauth.domain.ports import TicketOutcome

logger = logging.getLogger(__name__)

USER_AGENT = "emailauth/0.1.0"
REQUESTS_PATH = "/api/v2/requests.json"

_ERROR_CODES = {
    "InvalidEmail": TicketOutcome.INVALID_DATA,
    "RecordInvalid": TicketOutcome.INVALID_DATA,
    "TooManyRequests": TicketOutcome.RATE_LIMITED,
    "RateLimited": TicketOutcome.RATE_LIMITED,
    "Unauthorized": TicketOutcome.SERVICE_UNAVAILABLE,
    "Forbidden": TicketOutcome.SERVICE_UNAVAILABLE,
}


def build_http_client(settings: Settings, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """
    Create the HTTP client used for Zendesk calls.

    One client per external service keeps timeouts and proxy settings
    independent of anything else the process talks to.
    """
    return httpx.Client(
        timeout=httpx.Timeout(settings.zendesk_timeout, connect=settings.zendesk_connect_timeout),
        proxy=settings.zendesk_http_proxy,
        transport=transport,
    )


def substitute_custom_fields(
    templates: list[CustomFieldTemplate], request: RecoveryTicketRequest
) -> list[dict[str, Any]]:
    """Fill {username} and {registered_email}; drop fields that end up empty."""
    fields = []
    for template in templates:
        value = template.value.replace("{username}", request.requester_name or "")
        value = value.replace("{registered_email}", request.registered_email or "")
        if value != "":
            fields.append({"id": template.id, "value": value})
    return fields


def format_ticket_body(subject: str, request: RecoveryTicketRequest) -> str:
    """Plain-text ticket comment summarizing the request for support staff."""
    lines = [subject, ""]
    if request.requester_name:
        lines.append(f"Username: {request.requester_name}")
    if request.registered_email:
        lines.append(f"Email registered with account: {request.registered_email}")
    lines.append(f"Contact email: {request.requester_email}")
    lines.append("")
    lines.append("Additional comments:")
    lines.append(request.description or "None provided")
    return "\n".join(lines)


class ZendeskTicketingGateway:
    """
    Implements TicketingGateway protocol via the Zendesk Requests API.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Calls are synchronous and never retried here.
    """

    def __init__(self, settings: Settings, client: httpx.Client) -> None:
        """
        Initialize gateway.

        Args:
            settings: Application settings (zendesk_* options)
            client: httpx client, see build_http_client()
        """
        self._settings = settings
        self._client = client

    def build_payload(self, request: RecoveryTicketRequest) -> dict[str, Any]:
        """Build the JSON body for the create-request call."""
        subject = self._settings.zendesk_subject_line

        requester: dict[str, str] = {"email": request.requester_email}
        if request.requester_name:
            requester["name"] = request.requester_name

        return {
            "request": {
                "subject": subject,
                "type": "incident",
                "priority": "normal",
                "tags": list(self._settings.zendesk_tags),
                "ticket_form_id": self._settings.zendesk_ticket_form_id,
                "comment": {"body": format_ticket_body(subject, request)},
                "requester": requester,
                "custom_fields": substitute_custom_fields(self._settings.zendesk_custom_fields, request),
            }
        }

    def create_ticket(self, request: RecoveryTicketRequest) -> TicketOutcome:
        """
        Create a ticket for a confirmed recovery request.

        Returns:
            TicketOutcome.CREATED on success, otherwise the mapped error kind
        """
        url = f"{self._settings.zendesk_url}{REQUESTS_PATH}"
        auth = (f"{self._settings.zendesk_email}/token", self._settings.zendesk_token or "")

        try:
            response = self._client.post(
                url,
                json=self.build_payload(request),
                auth=auth,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    "User-Agent": USER_AGENT,
                },
            )
        except httpx.HTTPError as e:
            logger.error(
                "Zendesk request failed while creating account recovery ticket",
                extra={"error_type": type(e).__name__},
            )
            return TicketOutcome.GENERIC_ERROR

        return self._map_response(response)

    def _map_response(self, response: httpx.Response) -> TicketOutcome:
        status = response.status_code

        if response.is_success:
            logger.info("Zendesk ticket created for account recovery request", extra={"status": status})
            return TicketOutcome.CREATED

        # Checked before any parsing: rate limiter responses are often not JSON.
        if status == 429:
            logger.warning("Zendesk rate limit hit for account recovery", extra={"status": status})
            return TicketOutcome.RATE_LIMITED

        content = response.content or b""
        content_type = response.headers.get("Content-Type", "").lower()

        if content_type.startswith("application/json") and 400 <= status < 500:
            try:
                error_json = response.json()
            except ValueError:
                error_json = None

            if isinstance(error_json, dict):
                error = error_json.get("error")
                error_code = error if isinstance(error, str) else "Unknown error"
                logger.error(
                    "Zendesk error while creating account recovery ticket: %s",
                    error_code,
                    extra={"status": status, "error_code": error_code},
                )
                return _ERROR_CODES.get(error_code, TicketOutcome.GENERIC_ERROR)

        logger.error(
            "Unknown Zendesk error while creating account recovery ticket",
            extra={
                "status": status,
                "content_length": len(content),
                "content_hash": hashlib.sha256(content).hexdigest(),
            },
        )
        return TicketOutcome.GENERIC_ERROR
