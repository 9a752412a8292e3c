"""Resource providers - resolve catalog locations to bytes.

Locations are plain strings:

- ``https://charts.example.org/index.yaml``  fetched over HTTP(S)
- ``file:///srv/charts/index.yaml`` or ``/srv/charts/index.yaml``  local files
- ``classpath:/catalog-loader-test/index.yaml``  resources bundled with the service
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from importlib import resources as importlib_resources
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

import httpx

if TYPE_CHECKING:
    from importlib.resources.abc import Traversable

logger = logging.getLogger(__name__)

CLASSPATH_PREFIX = "classpath:"
FILE_PREFIX = "file:"


class ResourceError(Exception):
    """A resource could not be read."""

    def __init__(self, message: str, resource: str):
        super().__init__(message)
        self.resource = resource


class ResourceNotFoundError(ResourceError):
    """A resource does not exist at the given location."""


def join_location(base: str, relative: str) -> str:
    """
    Resolve ``relative`` against a catalog ``base`` location.

    Absolute URLs are returned untouched; anything else is appended to the
    base with a single separating slash.
    """
    if "://" in relative:
        return relative
    return f"{base.rstrip('/')}/{relative.lstrip('/')}"


class ResourceProvider(ABC):
    """Resolves a location string to the bytes it designates."""

    @abstractmethod
    def fetch(
        self, location: str, *, timeout: float | None = None, verify: bool = True
    ) -> bytes:
        """
        Read the resource at ``location``.

        Raises:
            ResourceNotFoundError: nothing exists at ``location``
            ResourceError: the resource exists but could not be read
        """
        ...

    @abstractmethod
    def describe(self, location: str) -> str:
        """Human-readable description of the resource, used in log messages."""
        ...

    def handles(self, location: str) -> bool:
        return True


class FileResourceProvider(ResourceProvider):
    """Reads ``file:`` URLs and bare filesystem paths."""

    def handles(self, location: str) -> bool:
        return location.startswith(FILE_PREFIX) or "://" not in location

    def _path(self, location: str) -> Path:
        if location.startswith(FILE_PREFIX):
            return Path(unquote(urlparse(location).path))
        return Path(location)

    def describe(self, location: str) -> str:
        return f"file [{self._path(location)}]"

    def fetch(
        self, location: str, *, timeout: float | None = None, verify: bool = True
    ) -> bytes:
        path = self._path(location)
        if not path.is_file():
            raise ResourceNotFoundError(
                f"{self.describe(location)} cannot be opened because it does not exist",
                self.describe(location),
            )
        try:
            return path.read_bytes()
        except OSError as e:
            raise ResourceError(f"Failed to read {self.describe(location)}: {e}", self.describe(location)) from e


@dataclass
class ClasspathResourceProvider(ResourceProvider):
    """
    Reads ``classpath:`` locations from a resource root shipped with the service.

    The root defaults to the ``onyxia_svc`` package; any directory path can be
    used instead, which is how tests point it at fixture trees.
    """
    root: Traversable | Path = field(
        default_factory=lambda: importlib_resources.files("onyxia_svc")
    )

    def handles(self, location: str) -> bool:
        return location.startswith(CLASSPATH_PREFIX)

    def _relative(self, location: str) -> str:
        return location[len(CLASSPATH_PREFIX):].lstrip("/")

    def describe(self, location: str) -> str:
        return f"class path resource [{self._relative(location)}]"

    def fetch(
        self, location: str, *, timeout: float | None = None, verify: bool = True
    ) -> bytes:
        resource = self.root
        for part in self._relative(location).split("/"):
            if part:
                resource = resource / part
        if not resource.is_file():
            raise ResourceNotFoundError(
                f"{self.describe(location)} cannot be opened because it does not exist",
                self.describe(location),
            )
        try:
            return resource.read_bytes()
        except OSError as e:
            raise ResourceError(f"Failed to read {self.describe(location)}: {e}", self.describe(location)) from e


@dataclass
class HttpResourceProvider(ResourceProvider):
    """
    Fetches ``http://`` and ``https://`` locations with httpx.

    Every request carries a bounded timeout. Clients are created lazily and
    shared between threads (httpx clients are thread-safe).
    """
    default_timeout: float = 10.0
    transport: httpx.BaseTransport | None = None  # Injected by tests
    _clients: dict[bool, httpx.Client] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def handles(self, location: str) -> bool:
        return location.startswith(("http://", "https://"))

    def describe(self, location: str) -> str:
        return f"URL [{location}]"

    def _client(self, verify: bool) -> httpx.Client:
        with self._lock:
            client = self._clients.get(verify)
            if client is None:
                client = httpx.Client(
                    verify=verify,
                    follow_redirects=True,
                    transport=self.transport,
                )
                self._clients[verify] = client
            return client

    def fetch(
        self, location: str, *, timeout: float | None = None, verify: bool = True
    ) -> bytes:
        effective_timeout = timeout if timeout is not None else self.default_timeout
        logger.debug("Fetching %s (timeout=%ss)", location, effective_timeout)
        try:
            response = self._client(verify).get(location, timeout=effective_timeout)
        except httpx.TimeoutException as e:
            raise ResourceError(
                f"Timed out after {effective_timeout}s fetching {self.describe(location)}",
                self.describe(location),
            ) from e
        except httpx.HTTPError as e:
            raise ResourceError(f"Failed to fetch {self.describe(location)}: {e}", self.describe(location)) from e

        if response.status_code == 404:
            raise ResourceNotFoundError(
                f"{self.describe(location)} returned 404 Not Found", self.describe(location)
            )
        if response.is_error:
            raise ResourceError(
                f"{self.describe(location)} returned HTTP {response.status_code}",
                self.describe(location),
            )
        return response.content

    def close(self) -> None:
        with self._lock:
            for client in self._clients.values():
                client.close()
            self._clients.clear()


@dataclass
class CompositeResourceProvider(ResourceProvider):
    """
    Dispatches each location to the first provider that handles it.

    Providers are tried in order; put the catch-all file provider last.
    """
    providers: list[ResourceProvider] = field(default_factory=list)

    def _provider_for(self, location: str) -> ResourceProvider:
        for provider in self.providers:
            if provider.handles(location):
                return provider
        raise ResourceError(f"No resource provider for location {location!r}", location)

    def handles(self, location: str) -> bool:
        return any(p.handles(location) for p in self.providers)

    def describe(self, location: str) -> str:
        try:
            return self._provider_for(location).describe(location)
        except ResourceError:
            return location

    def fetch(
        self, location: str, *, timeout: float | None = None, verify: bool = True
    ) -> bytes:
        return self._provider_for(location).fetch(location, timeout=timeout, verify=verify)

    def close(self) -> None:
        for provider in self.providers:
            close = getattr(provider, "close", None)
            if close is not None:
                close()


def create_default_provider(
    http_timeout: float = 10.0,
    classpath_root: str | Path | None = None,
) -> CompositeResourceProvider:
    """Build the provider chain used by the service: classpath, HTTP, then files."""
    classpath = (
        ClasspathResourceProvider(root=Path(classpath_root))
        if classpath_root
        else ClasspathResourceProvider()
    )
    return CompositeResourceProvider(providers=[
        classpath,
        HttpResourceProvider(default_timeout=http_timeout),
        FileResourceProvider(),
    ])
