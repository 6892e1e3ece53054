"""Service-account access tokens for the Sheets API (JWT bearer grant)"""

import logging
import time
from typing import Optional

import httpx
from jose import jwt

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
JWT_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"

# refresh this many seconds before Google says the token expires
EXPIRY_MARGIN_SECONDS = 60


def restore_private_key(raw: Optional[str]) -> Optional[str]:
    """Env files usually carry the PEM on one line with literal \\n sequences"""
    if not raw:
        return None
    return raw.replace("\\n", "\n")


class ServiceAccountTokenProvider:
    def __init__(
        self,
        client_email: Optional[str],
        private_key: Optional[str],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_email = client_email
        self.private_key = restore_private_key(private_key)
        self._transport = transport
        self._token: Optional[str] = None
        self._expires_at: float = 0

    @property
    def configured(self) -> bool:
        return bool(self.client_email and self.private_key)

    def build_assertion(self, now: Optional[int] = None) -> str:
        issued_at = int(now if now is not None else time.time())
        claims = {
            "iss": self.client_email,
            "scope": SHEETS_SCOPE,
            "aud": GOOGLE_TOKEN_URL,
            "iat": issued_at,
            "exp": issued_at + 3600,
        }
        return jwt.encode(claims, self.private_key, algorithm="RS256")

    async def get_access_token(self) -> str:
        """Cached bearer token. Raises httpx errors or RuntimeError on failure."""
        if self._token and time.time() < self._expires_at - EXPIRY_MARGIN_SECONDS:
            return self._token

        logger.info("🔄 Requesting Google service account token...")
        async with httpx.AsyncClient(timeout=15.0, transport=self._transport) as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={"grant_type": JWT_GRANT_TYPE, "assertion": self.build_assertion()},
            )

        if response.status_code != 200:
            raise RuntimeError(f"Token request failed: HTTP {response.status_code} {response.text}")

        tokens = response.json()
        access_token = tokens.get("access_token")
        if not access_token:
            raise RuntimeError("No access token in token response")

        self._token = access_token
        self._expires_at = time.time() + int(tokens.get("expires_in", 3600))
        return access_token
