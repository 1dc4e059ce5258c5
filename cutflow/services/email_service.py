import logging
import re
from typing import List, Union

import requests

from cutflow.config import settings

logger = logging.getLogger(__name__)

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


def is_valid_email(email):
    if isinstance(email, list):
        return all(is_valid_email(e) for e in email)

    if not email:
        return False

    return re.match(r"[^@]+@[^@]+\.[^@]+", email) is not None


def send_email(to: Union[str, List[str]], subject: str, html: str) -> bool:
    """
    Send email via Brevo.

    Returns False instead of raising; a failed email never fails the
    request that triggered it.
    """

    if isinstance(to, list):
        valid_emails = [e for e in to if is_valid_email(e)]
    else:
        valid_emails = [to] if is_valid_email(to) else []

    if not valid_emails:
        logger.warning("No valid emails found: %s", to)
        return False

    if not settings.BREVO_API_KEY:
        logger.info("BREVO_API_KEY not set, skipping email %r", subject)
        return False

    payload = {
        "sender": {
            "email": settings.MAIL_FROM,
            "name": settings.PLATFORM_NAME,
        },
        "to": [{"email": e} for e in valid_emails],
        "subject": subject,
        "htmlContent": html,
    }

    headers = {
        "api-key": settings.BREVO_API_KEY,
        "Content-Type": "application/json",
    }

    try:
        response = requests.post(
            BREVO_API_URL,
            json=payload,
            headers=headers,
            timeout=10,
        )
    except requests.RequestException:
        logger.exception("Brevo email exception")
        return False

    if response.status_code >= 400:
        logger.error(
            "Brevo email failed (%s): %s", response.status_code, response.text
        )
        return False

    logger.info("Brevo email sent to %s", valid_emails)
    return True
