"""
Async client for the Transifex API (version 2).

Resources are XLF documents addressed by project and resource slug.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from ..config.schema import TransifexConfig
from ..utils.core.exceptions import ConfigurationError, TransifexError

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

USER_AGENT = "extbuild/1.0"


class TransifexClient:
    """Push source strings to and pull translations from Transifex."""

    def __init__(
        self,
        config: TransifexConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Service endpoint and credentials
            transport: Optional transport, used to substitute the network in tests
        """
        self.config: TransifexConfig = config
        self.base_url: str = f"https://{config.hostname}/api/2/"
        self._transport: httpx.AsyncBaseTransport | None = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> TransifexClient:
        if not self.config.api_token:
            raise ConfigurationError(
                "No Transifex API token configured; set TRANSIFEX_API_TOKEN"
            )
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.config.api_name, self.config.api_token),
            headers={"User-Agent": USER_AGENT},
            timeout=self.config.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, endpoint: str, **kwargs: object
    ) -> httpx.Response:
        """
        Make an HTTP request against the API.

        Raises:
            TransifexError: If the request fails or returns an error status
        """
        if self._client is None:
            raise RuntimeError("TransifexClient must be used as an async context manager")

        try:
            response = await self._client.request(method, endpoint, **kwargs)  # pyright: ignore[reportArgumentType]
            _ = response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            error_msg = f"HTTP {e.response.status_code} for {method} {endpoint}: {e.response.text}"
            raise TransifexError(error_msg, e.response.status_code) from e
        except httpx.RequestError as e:
            raise TransifexError(f"Request to {endpoint} failed: {e}") from e

    async def push_resource(self, project: str, resource: str, content: str) -> bool:
        """
        Upload the source document of a resource.

        The content of an existing resource is replaced. A resource the
        service does not know yet is created.

        Args:
            project: Project slug
            resource: Resource slug
            content: XLF document

        Returns:
            True if the resource was created, False if it was updated

        Raises:
            TransifexError: If the upload fails
        """
        try:
            _ = await self._request(
                "PUT",
                f"project/{project}/resource/{resource}/content/",
                json={"content": content},
            )
            logger.info(f"Updated resource {project}/{resource}")
            return False
        except TransifexError as e:
            if e.status_code != 404:
                raise

        logger.info(f"Resource {project}/{resource} does not exist yet, creating it")
        _ = await self._request(
            "POST",
            f"project/{project}/resources/",
            json={
                "content": content,
                "name": resource,
                "slug": resource,
                "i18n_type": "XLIFF",
            },
        )
        logger.info(f"Created resource {project}/{resource}")
        return True

    async def pull_translation(self, project: str, resource: str, language: str) -> str:
        """
        Download the translated document of a resource.

        Only translated strings are included.

        Args:
            project: Project slug
            resource: Resource slug
            language: Remote locale id

        Returns:
            The XLF document

        Raises:
            TransifexError: If the download fails
        """
        response = await self._request(
            "GET",
            f"project/{project}/resource/{resource}/translation/{language}/",
            params={"file": "", "mode": "onlytranslated"},
        )
        logger.debug(f"Pulled {project}/{resource} for {language} ({len(response.content)} bytes)")
        return response.text
