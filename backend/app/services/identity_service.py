"""Identity provider client (Supabase auth over REST)"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from app.core.config import settings
from app.core.exceptions import UpstreamFailure, Unauthorized

logger = logging.getLogger(__name__)


@dataclass
class Principal:
    id: str
    email: Optional[str] = None


class IdentityProvider:
    """Exchanges OAuth authorization codes for an authenticated principal"""

    def __init__(self, base_url: str, api_key: str, timeout: float, client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)

    def close(self):
        self._client.close()

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> Principal:
        """Exchange an auth code (PKCE flow) for the signed-in user

        Raises:
            Unauthorized: the provider rejected the code
            UpstreamFailure: the provider could not be reached or answered garbage
        """
        if not self.base_url:
            raise UpstreamFailure("Identity provider is not configured")

        try:
            response = self._client.post(
                f"{self.base_url}/auth/v1/token",
                params={"grant_type": "pkce"},
                json={"auth_code": code, "code_verifier": code_verifier},
                headers={"apikey": self.api_key},
            )
        except httpx.HTTPError as e:
            logger.error(f"Identity provider request failed: {e}")
            raise UpstreamFailure(f"Identity provider request failed: {e}")

        if response.status_code in (400, 401, 403, 404):
            logger.info(f"Identity provider rejected auth code: {response.status_code}")
            raise Unauthorized("Invalid or expired authorization code.")
        if response.status_code >= 400:
            logger.error(f"Identity provider error {response.status_code}: {response.text[:200]}")
            raise UpstreamFailure(f"Identity provider returned {response.status_code}")

        try:
            user = response.json()["user"]
            return Principal(id=str(user["id"]), email=user.get("email"))
        except (ValueError, KeyError, TypeError) as e:
            raise UpstreamFailure(f"Unexpected identity provider response: {e}")


def create_identity_provider() -> IdentityProvider:
    return IdentityProvider(
        base_url=settings.SUPABASE_URL,
        api_key=settings.SUPABASE_ANON_KEY,
        timeout=settings.IDENTITY_TIMEOUT_SECONDS,
    )
