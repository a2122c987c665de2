from dataclasses import dataclass

from psycopg.rows import dict_row

from app.database.connection import get_connection


@dataclass(frozen=True)
class ExtractionCredential:
    """OAuth client credentials a principal uses against the extraction service."""

    principal_id: int
    client_id: str
    client_secret: str
    token_url: str | None = None


class CredentialRepository:
    """Database operations for the extraction_credentials table."""

    def find_by_principal(self, principal_id: int) -> ExtractionCredential | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT principal_id, client_id, client_secret, token_url
                    FROM extraction_credentials
                    WHERE principal_id = %s
                    """,
                    (principal_id,),
                )
                row = cur.fetchone()

        if row is None:
            return None

        return ExtractionCredential(
            principal_id=row["principal_id"],
            client_id=row["client_id"],
            client_secret=row["client_secret"],
            token_url=row["token_url"],
        )
