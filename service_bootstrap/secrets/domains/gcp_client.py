"""GCP Secret Manager client wrapper."""
import logging
from typing import Any, Callable, Optional, Tuple
from urllib.parse import urlparse

import google.auth
from google.cloud import secretmanager

from ...errors import ConfigError

logger = logging.getLogger(__name__)

# Returns (credentials, project_id), the shape of google.auth.default().
CredentialsProvider = Callable[[], Tuple[Any, Optional[str]]]

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


def default_credentials() -> Tuple[Any, Optional[str]]:
    """
    Ambient credential discovery.

    Checks GOOGLE_APPLICATION_CREDENTIALS, gcloud application-default
    credentials and finally the metadata server, in that order.
    """
    return google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])


def parse_secret_manager_url(url: str) -> Tuple[str, Optional[str]]:
    """
    Split a Secret Manager URL into API endpoint and optional project ID.

    Accepted forms:
        https://secretmanager.googleapis.com
        https://secretmanager.googleapis.com/projects/my-project

    Returns:
        (api_endpoint, project_id or None)

    Raises:
        ConfigError: If the URL is not https or has an unexpected path
    """
    parsed = urlparse(url.strip())
    if parsed.scheme != "https" or not parsed.hostname:
        raise ConfigError(f"Secret Manager URL must be an https URL, got: {url!r}")

    parts = [part for part in parsed.path.split("/") if part]
    if not parts:
        return parsed.netloc, None
    if len(parts) != 2 or parts[0] != "projects":
        raise ConfigError(
            f"Secret Manager URL path must be /projects/<project-id>, got: {parsed.path!r}"
        )
    return parsed.netloc, parts[1]


class GCPSecretStore:
    """Async access to the latest version of secrets in one GCP project."""

    def __init__(self, client: Any, project_id: str):
        self._client = client
        self.project_id = project_id

    @classmethod
    def from_url(
        cls,
        url: str,
        credentials_provider: Optional[CredentialsProvider] = None,
        project_override: Optional[str] = None,
    ) -> "GCPSecretStore":
        """
        Build an authenticated store for the given Secret Manager URL.

        Project ID priority order:
        1. Project in the URL path
        2. project_override (GCP_PROJECT)
        3. Project reported by the credentials provider

        Raises:
            ConfigError: If the URL is malformed or no project ID can be determined
        """
        endpoint, project_id = parse_secret_manager_url(url)
        credentials, detected_project = (credentials_provider or default_credentials)()

        project_id = project_id or project_override or detected_project
        if not project_id:
            raise ConfigError(
                "Project ID not found. Add /projects/<id> to the Secret Manager URL "
                "or set GCP_PROJECT"
            )

        client = secretmanager.SecretManagerServiceAsyncClient(
            credentials=credentials,
            client_options={"api_endpoint": endpoint},
        )
        logger.info(f"Secret Manager client ready for project {project_id} at {endpoint}")
        return cls(client, project_id)

    async def get_secret(self, secret_name: str) -> str:
        """
        Fetch the latest version of a secret.

        Raises:
            google.api_core.exceptions.GoogleAPIError: If the secret cannot be read
        """
        name = f"projects/{self.project_id}/secrets/{secret_name}/versions/latest"
        response = await self._client.access_secret_version(request={"name": name})
        return response.payload.data.decode("UTF-8")

    async def close(self) -> None:
        await self._client.transport.close()
