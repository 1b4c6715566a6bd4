# cashledger/utils/mailer.py
import logging

import requests

from cashledger.core import config
from cashledger.core.exceptions import DependencyError

logger = logging.getLogger(__name__)


def send_email(to, subject: str, html: str) -> dict:
    """
    Sends an email through the mail API.
      - returns the API result on success
      - raises DependencyError on failure
    """
    recipients = [to] if isinstance(to, str) else list(to)
    if not recipients:
        raise DependencyError("No email recipients given")
    if not config.MAIL_API_URL:
        raise DependencyError("MAIL_API_URL is not configured")

    payload = {
        "from": config.MAIL_FROM,
        "to": recipients,
        "subject": subject,
        "html": html,
    }
    headers = {"Authorization": f"Bearer {config.MAIL_API_KEY}"} if config.MAIL_API_KEY else {}

    try:
        response = requests.post(config.MAIL_API_URL, json=payload, headers=headers, timeout=config.HTTP_TIMEOUT)
        response.raise_for_status()
        result = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("Failed to send email %r to %d recipient(s): %s", subject, len(recipients), e)
        raise DependencyError("Failed to send email") from e

    if isinstance(result, dict) and result.get("success") is False:
        raise DependencyError(result.get("message", "Failed to send email"))

    logger.info("Sent email %r to %d recipient(s)", subject, len(recipients))
    return result
