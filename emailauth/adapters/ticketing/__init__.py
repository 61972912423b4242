"""Ticketing adapters - External support system implementations."""

from .zendesk import ZendeskTicketingGateway, build_http_client

__all__ = ["ZendeskTicketingGateway", "build_http_client"]
