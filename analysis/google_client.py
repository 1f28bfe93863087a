"""
Service-account authentication for the Google reporting APIs.

Authentication: Service Account JSON (set GSC_SERVICE_ACCOUNT_JSON env var).
The same account needs read access to the Search Console property and the
Analytics property of every project.
"""

import json
import os
import threading
from typing import Any, Callable

SCOPES = [
    "https://www.googleapis.com/auth/webmasters.readonly",
    "https://www.googleapis.com/auth/analytics.readonly",
]


def build_service(api: str, version: str):
    """Build an authenticated discovery client, e.g. ("searchconsole", "v1")."""
    try:
        from google.oauth2 import service_account
        from googleapiclient.discovery import build
    except ImportError:
        raise ImportError(
            "Google API packages not installed. "
            "Run: pip install google-auth google-api-python-client"
        )

    raw = os.environ.get("GSC_SERVICE_ACCOUNT_JSON")
    if not raw:
        raise EnvironmentError("GSC_SERVICE_ACCOUNT_JSON environment variable not set")

    creds = service_account.Credentials.from_service_account_info(
        json.loads(raw), scopes=SCOPES
    )
    return build(api, version, credentials=creds, cache_discovery=False)


class ThreadLocalService:
    """
    One discovery client per worker thread.

    A built service carries its own httplib2 transport, which must not be
    shared between threads; sources fetch concurrently via asyncio.to_thread.
    """

    def __init__(self, factory: Callable[[], Any]):
        self._factory = factory
        self._local = threading.local()

    def get(self):
        service = getattr(self._local, "service", None)
        if service is None:
            service = self._local.service = self._factory()
        return service
