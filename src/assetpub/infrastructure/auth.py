"""OAuth2 client-credentials token provider (requests)"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Tuple

import requests

from assetpub.domain.config.credentials import ClientCredentials
from assetpub.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Refresh tokens this many seconds before they expire
EXPIRY_MARGIN = 300.0


class ClientSecretTokenProvider:
    """Obtains and caches access tokens for a service principal"""

    def __init__(
        self,
        credentials: ClientCredentials,
        authority: str = "https://login.microsoftonline.com",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize token provider

        Args:
            credentials: Tenant, client id and client secret
            authority: Identity platform host for the target cloud
            timeout: Token request timeout in seconds
            session: Optional requests session (a new one is created if None)
            clock: Monotonic clock used for token expiry

        Raises:
            ConfigurationError: If any credential part is missing
        """
        if not credentials.complete:
            raise ConfigurationError(
                "Service principal credentials are incomplete: "
                "tenant_id, client_id and client_secret are required"
            )
        self.credentials = credentials
        self.authority = authority.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._clock = clock
        self._cache: Dict[str, Tuple[str, float]] = {}

    @property
    def token_url(self) -> str:
        return f"{self.authority}/{self.credentials.tenant_id}/oauth2/v2.0/token"

    def get_token(self, scope: str) -> str:
        """Return a valid access token for ``scope``, requesting one if needed"""
        cached = self._cache.get(scope)
        if cached and cached[1] > self._clock():
            return cached[0]

        logger.debug(f"Requesting token for {scope} from {self.authority}")
        resp = self.session.post(
            self.token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret.get_secret_value(),
                "scope": scope,
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        payload = resp.json()
        token = payload["access_token"]
        expires_in = float(payload.get("expires_in", 3600))
        self._cache[scope] = (token, self._clock() + max(0.0, expires_in - EXPIRY_MARGIN))
        return token
