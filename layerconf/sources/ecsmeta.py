"""Amazon ECS task metadata as template data.

Fetches the task metadata document from the container metadata endpoint and
returns it under the ``ecsTaskMetadata`` key, ready for ``Loader.data()``:

    loader.data(ecsmeta.new(max_retries=3))

    images:
    {% for c in ecsTaskMetadata.Containers %}
      - {{ c.Image }}
    {% endfor %}
"""

import logging
import os
import random
import time
from typing import Any, Optional

import requests

from ..errors import MaxRetriesExceededError

logger = logging.getLogger(__name__)

DATA_KEY = "ecsTaskMetadata"
V2_ENDPOINT = "http://169.254.170.2/v2/metadata"


class MetadataFetchError(Exception):
    """Exception raised for a single failed metadata request."""

    pass


def default_endpoint() -> str:
    """Resolve the task metadata endpoint from the ECS agent's environment."""
    endpoint = ""
    for name in ("ECS_CONTAINER_METADATA_URI", "ECS_CONTAINER_METADATA_URI_V4"):
        uri = os.environ.get(name, "")
        if uri:
            endpoint = uri + "/task"
    return endpoint


class MetadataFetcher:
    """HTTP client for the ECS task metadata endpoint with retry support."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        enable_v2: bool = False,
        session: Optional[requests.Session] = None,
        max_retries: int = 5,
        interval: float = 0.5,
        jitter_factor: float = 0.5,
        max_interval: float = 30.0,
        timeout: float = 5.0,
    ):
        """Initialize the fetcher.

        Args:
            endpoint: Metadata URL (resolved from the environment if None)
            enable_v2: Fall back to the v2 endpoint when none is configured
            session: HTTP session to use (one-off requests when None)
            max_retries: Retries after the first attempt
            interval: Base delay in seconds for exponential backoff
            jitter_factor: Random fraction of the delay added or removed
            max_interval: Upper bound for a single delay
            timeout: Per-request timeout in seconds
        """
        self.endpoint = endpoint if endpoint is not None else default_endpoint()
        if not self.endpoint and enable_v2:
            self.endpoint = V2_ENDPOINT
        self.session = session
        self.max_retries = max_retries
        self.interval = interval
        self.jitter_factor = jitter_factor
        self.max_interval = max_interval
        self.timeout = timeout

    def fetch(self) -> Optional[Any]:
        """Fetch the metadata document.

        Returns:
            Decoded metadata, or None when no endpoint is configured

        Raises:
            MaxRetriesExceededError: If every attempt failed
        """
        if not self.endpoint:
            logger.debug("No ECS metadata endpoint configured")
            return None

        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                metadata = self._fetch_once()
                logger.info(f"Fetched ECS task metadata from {self.endpoint}")
                return metadata
            except MetadataFetchError as e:
                logger.debug(f"[{attempt}]: unable to get ecs metadata response: {e}")
                if attempt < attempts:
                    time.sleep(self._delay(attempt))

        logger.warning("max retries count reached")
        raise MaxRetriesExceededError(
            f"unable to get ecs metadata after {attempts} attempts", self.endpoint
        )

    def _fetch_once(self) -> Any:
        try:
            get = self.session.get if self.session is not None else requests.get
            response = get(self.endpoint, timeout=self.timeout)
        except requests.RequestException as e:
            raise MetadataFetchError(f"unable to get response: {e}") from e

        if response.status_code != 200:
            raise MetadataFetchError(f"incorrect status code {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise MetadataFetchError(f"unable to decode response body: {e}") from e

    def _delay(self, attempt: int) -> float:
        """Exponential backoff with jitter."""
        delay = min(self.interval * (2 ** (attempt - 1)), self.max_interval)
        jitter = random.uniform(-delay * self.jitter_factor, delay * self.jitter_factor)
        return max(delay + jitter, 0.0)


def new(**options: Any) -> dict[str, Any]:
    """Fetch ECS task metadata as a data context mapping.

    Accepts the keyword arguments of ``MetadataFetcher``. Returns an empty
    mapping when no endpoint is configured.
    """
    metadata = MetadataFetcher(**options).fetch()
    if metadata is None:
        return {}
    return {DATA_KEY: metadata}
