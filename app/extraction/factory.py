from app.config.settings import Settings
from app.database.repositories.credential_repository import CredentialRepository
from app.extraction.client_base import BaseJobStatusClient
from app.extraction.credentials import (
    BaseCredentialProvider,
    OAuthCredentialProvider,
    StaticCredentialProvider,
)
from app.extraction.example_client import ExampleJobStatusClient
from app.extraction.http_client import HttpJobStatusClient


class JobStatusClientFactory:
    """Creates the configured job status client."""

    @classmethod
    def create(cls, settings: Settings) -> BaseJobStatusClient:
        client = settings.extraction_client.lower()
        if client == "example":
            return ExampleJobStatusClient()
        if client == "http":
            return HttpJobStatusClient(
                base_url=settings.extraction_base_url,
                jobs_path=settings.extraction_jobs_path,
                timeout_seconds=settings.extraction_timeout_seconds,
            )
        raise ValueError(
            f"Unknown extraction client '{client}'. Choose from: ['example', 'http']"
        )


class CredentialProviderFactory:
    """Creates the configured credential provider."""

    @classmethod
    def create(cls, settings: Settings) -> BaseCredentialProvider:
        provider = settings.credential_provider.lower()
        if provider == "static":
            return StaticCredentialProvider(settings.credential_static_token)
        if provider == "oauth":
            return OAuthCredentialProvider(
                credential_repo=CredentialRepository(),
                default_token_url=settings.credential_token_url,
                timeout_seconds=settings.credential_timeout_seconds,
            )
        raise ValueError(
            f"Unknown credential provider '{provider}'. Choose from: ['oauth', 'static']"
        )
