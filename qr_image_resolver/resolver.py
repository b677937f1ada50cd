"""Resolve QR code payloads into image references served by a remote renderer."""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from urllib.parse import quote, urlsplit

from qr_image_resolver import (
    ALT_TEXT,
    DEFAULT_ENDPOINT,
    DEFAULT_SIZE,
    ENDPOINT_ENV_VAR,
)

logger = logging.getLogger(__name__)

# Characters left unescaped by JavaScript's encodeURIComponent
_COMPONENT_SAFE = "-_.!~*'()"


class InvalidArgument(ValueError):
    """Raised when a QR request carries a value or size that cannot be resolved."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

class LoadingHint(Enum):
    """Loading attribute passed to the display collaborator."""
    EAGER = "eager"
    LAZY = "lazy"  # Not needed for first paint


@dataclass(frozen=True)
class QRRequest:
    """A payload and the square pixel size it should be rendered at."""

    value: str
    size: int = DEFAULT_SIZE

    def __post_init__(self):
        if not isinstance(self.value, str):
            raise InvalidArgument(
                f"QR value must be a string, got {type(self.value).__name__}."
            )
        # bool is an int subclass; True is not a pixel size
        if isinstance(self.size, bool) or not isinstance(self.size, int):
            raise InvalidArgument(
                f"QR size must be a positive integer, got {self.size!r}."
            )
        if self.size <= 0:
            raise InvalidArgument(
                f"QR size must be a positive integer, got {self.size}."
            )


@dataclass(frozen=True)
class ImageReference:
    """Everything a display client needs to show a QR code image."""

    url: str
    width: int
    height: int
    alt_text: str = ALT_TEXT
    loading_hint: LoadingHint = LoadingHint.LAZY


def encode_component(value: str) -> str:
    """Percent-encode a string the way encodeURIComponent does.

    UTF-8 bytes are escaped except for unreserved characters, so space becomes
    ``%20`` and ``?``, ``&``, ``#``, ``/``, ``%``, ``+`` and ``=`` are all escaped.

    Raises:
        InvalidArgument: If the string cannot be encoded as UTF-8
            (e.g. it contains a lone surrogate).
    """
    try:
        return quote(value, safe=_COMPONENT_SAFE, encoding="utf-8", errors="strict")
    except UnicodeEncodeError as e:
        raise InvalidArgument(f"QR value is not valid Unicode text: {e}") from e


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class BaseResolver(ABC):
    """Abstract base class for QR image resolvers.

    Subclasses decide where the image comes from by implementing
    :meth:`build_url`. Validation and the shape of the returned
    :class:`ImageReference` are shared.
    """

    @abstractmethod
    def build_url(self, request: QRRequest) -> str:
        """Build the image URL for a validated request."""
        ...

    @abstractmethod
    def name(self) -> str:
        ...

    def resolve(self, value: str, size: int = DEFAULT_SIZE) -> ImageReference:
        """Map a payload and pixel size to an image reference.

        Args:
            value: Text to encode. Any string is accepted, including empty.
            size: Square pixel dimension. Default 128.

        Returns:
            An ImageReference with ``width == height == size``.

        Raises:
            InvalidArgument: If ``size`` is not a positive integer or
                ``value`` is not a string.
        """
        request = QRRequest(value=value, size=size)
        url = self.build_url(request)
        logger.debug("Resolved QR image via %s: %s", self.name(), url)
        return ImageReference(
            url=url,
            width=request.size,
            height=request.size,
            alt_text=ALT_TEXT,
            loading_hint=LoadingHint.LAZY,
        )


# ---------------------------------------------------------------------------
# Remote rendering service
# ---------------------------------------------------------------------------

class RemoteServiceResolver(BaseResolver):
    """Resolver that points at an HTTP(S) QR rendering endpoint.

    The endpoint receives ``size`` (decimal pixels) and ``data``
    (percent-encoded payload) as query parameters and returns image bytes.
    Default endpoint: api.qrserver.com
    """

    def __init__(self, endpoint: str = DEFAULT_ENDPOINT):
        if any(ch.isspace() or not ch.isprintable() for ch in endpoint):
            raise ValueError(
                f"QR endpoint must not contain whitespace or control characters: {endpoint!r}."
            )
        parts = urlsplit(endpoint)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(
                f"QR endpoint must be an absolute http(s) URL, got '{endpoint}'."
            )
        if parts.fragment or endpoint.endswith("#"):
            raise ValueError(f"QR endpoint must not contain a fragment: '{endpoint}'.")
        self._endpoint = endpoint

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def name(self) -> str:
        return f"Remote service ({urlsplit(self._endpoint).netloc})"

    def build_url(self, request: QRRequest) -> str:
        if urlsplit(self._endpoint).query:
            separator = "&"
        elif self._endpoint.endswith("?"):
            separator = ""
        else:
            separator = "?"
        return (
            f"{self._endpoint}{separator}"
            f"size={request.size}&data={encode_component(request.value)}"
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def get_resolver(endpoint: str | None = None) -> BaseResolver:
    """Factory function to get a configured resolver.

    Args:
        endpoint: Rendering endpoint. Falls back to the QR_IMAGE_ENDPOINT
            environment variable, then to the default service.

    Returns:
        A ready-to-use resolver.
    """
    if endpoint is None:
        endpoint = os.environ.get(ENDPOINT_ENV_VAR) or DEFAULT_ENDPOINT
    return RemoteServiceResolver(endpoint)


_default_resolver = RemoteServiceResolver()


def resolve(value: str, size: int = DEFAULT_SIZE) -> ImageReference:
    """Resolve against the default rendering service."""
    return _default_resolver.resolve(value, size)
