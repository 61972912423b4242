"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging messages instead of delivering them.
"""

import logging

from emailauth.domain.ports import EmailContent

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes. The envelope is logged at INFO; the body,
    which carries codes and confirmation links, only at DEBUG.
    """

    def send(self, to: str, sender: str, subject: str, body: str | EmailContent) -> None:
        """
        Log a message to the console (simulates email delivery).

        Args:
            to: Recipient address
            sender: From address
            subject: Subject line
            body: Plain text, or a text/html pair of which the text part is logged
        """
        text = body.text if isinstance(body, EmailContent) else body
        logger.info("[EMAIL] To: %s From: %s Subject: %s", to, sender, subject)
        logger.debug("[EMAIL] Body:\n%s", text)
