# cashledger/utils/storage.py
import logging
from urllib.parse import quote

import requests

from cashledger.core import config
from cashledger.core.exceptions import DependencyError, ValidationError

logger = logging.getLogger(__name__)


def create_signed_urls(bucket: str, paths: list, expires_in: int = None) -> list:
    """Ask the storage API for time-limited URLs, one per path, in input order."""
    if not bucket or not isinstance(paths, list) or not paths:
        raise ValidationError("bucket and paths are required")
    expires_in = config.SIGNED_URL_DEFAULT_EXPIRY if expires_in is None else expires_in
    if isinstance(expires_in, bool) or not isinstance(expires_in, int) or expires_in <= 0:
        raise ValidationError("expiresIn must be a positive integer")

    headers = {}
    if config.STORAGE_SERVICE_KEY:
        headers["Authorization"] = f"Bearer {config.STORAGE_SERVICE_KEY}"

    base_url = config.STORAGE_API_URL.rstrip("/")
    try:
        response = requests.post(
            f"{base_url}/object/sign/{quote(bucket)}",
            json={"expiresIn": expires_in, "paths": paths},
            headers=headers,
            timeout=config.HTTP_TIMEOUT,
        )
        response.raise_for_status()
        entries = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("[storage:sign] Error creating signed URLs for bucket %s: %s", bucket, e)
        raise DependencyError("Failed to generate signed URLs") from e

    urls = []
    for entry in entries or []:
        signed = entry.get("signedURL") or entry.get("signedUrl")
        if not signed:
            urls.append(None)
        elif signed.startswith("http"):
            urls.append(signed)
        else:
            urls.append(f"{base_url}{signed}")
    return urls
