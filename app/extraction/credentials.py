from abc import ABC, abstractmethod

import httpx

from app.database.repositories.credential_repository import CredentialRepository
from app.logging.logger import Log


class BaseCredentialProvider(ABC):
    """Contract for obtaining short-lived bearer tokens for the extraction service."""

    @abstractmethod
    def fetch_access_token(self, principal_id: int) -> str | None:
        """Return a bearer token for the principal, or None if none can be issued."""

    def close(self) -> None:
        """Release network resources. Providers without any keep the no-op."""


class StaticCredentialProvider(BaseCredentialProvider):
    """Hands out one configured token to every principal."""

    def __init__(self, token: str) -> None:
        self._token = token

    def fetch_access_token(self, principal_id: int) -> str | None:
        return self._token or None


class OAuthCredentialProvider(BaseCredentialProvider):
    """Client-credentials grant using per-principal secrets from the database."""

    def __init__(
        self,
        *,
        credential_repo: CredentialRepository,
        default_token_url: str,
        timeout_seconds: int,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._credential_repo = credential_repo
        self._default_token_url = default_token_url
        self._client = httpx.Client(timeout=timeout_seconds, transport=transport)

    def fetch_access_token(self, principal_id: int) -> str | None:
        credential = self._credential_repo.find_by_principal(principal_id)
        if credential is None:
            Log.warning(f"No extraction credentials stored for principal {principal_id}")
            return None

        token_url = credential.token_url or self._default_token_url
        if not token_url:
            Log.error("No token URL configured for extraction credentials")
            return None

        try:
            response = self._client.post(
                token_url,
                data={"grant_type": "client_credentials"},
                auth=(credential.client_id, credential.client_secret),
            )
            response.raise_for_status()
            token = response.json().get("access_token")
        except (httpx.HTTPError, ValueError) as exc:
            Log.error(f"Token request failed for principal {principal_id}: {exc}")
            return None

        if not isinstance(token, str) or not token:
            Log.error(f"Token response for principal {principal_id} has no access_token")
            return None
        return token

    def close(self) -> None:
        self._client.close()
