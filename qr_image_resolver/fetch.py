"""Download the image behind a resolved reference.

This is a rendering collaborator used by the CLI. The resolver itself never
performs network I/O.
"""

import io
import logging
import os
import time

import requests
from PIL import Image

from qr_image_resolver.resolver import ImageReference

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_SECONDS = 30


class FetchError(RuntimeError):
    """Raised when the rendering service does not deliver a usable image."""


class _TransientError(Exception):
    """A failure worth retrying (server error, dropped connection, timeout)."""


def _get_once(url: str, timeout: int) -> bytes:
    try:
        response = requests.get(url, timeout=timeout)
    except (
        requests.ConnectionError,
        requests.Timeout,
        requests.exceptions.ChunkedEncodingError,
    ) as e:
        raise _TransientError(str(e)) from e
    except requests.RequestException as e:
        raise FetchError(f"Request to rendering service failed: {e}") from e

    if response.status_code >= 500:
        raise _TransientError(f"server returned HTTP {response.status_code}")
    if response.status_code >= 400:
        raise FetchError(f"Rendering service rejected the request: HTTP {response.status_code}")
    return response.content


def _retry_with_backoff(fn, max_retries: int = DEFAULT_MAX_RETRIES):
    """Execute a function, retrying transient failures with exponential backoff.

    Args:
        fn: Callable to execute.
        max_retries: Maximum number of attempts.

    Returns:
        The return value of fn().

    Raises:
        FetchError: When every attempt failed transiently, or on the first
            non-transient failure.
    """
    last_exception = None

    for attempt in range(1, max_retries + 1):
        try:
            return fn()
        except _TransientError as e:
            last_exception = e
            if attempt < max_retries:
                wait = 2 ** attempt
                logger.warning(
                    "Attempt %d/%d failed: %s. Retrying in %ds...",
                    attempt, max_retries, e, wait,
                )
                time.sleep(wait)

    raise FetchError(
        f"Rendering service unavailable after {max_retries} attempts: {last_exception}"
    ) from last_exception


def fetch_image_bytes(
    reference: ImageReference,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> bytes:
    """Fetch the referenced image and check that the body is an image."""
    logger.debug("Fetching QR image: %s", reference.url)
    content = _retry_with_backoff(lambda: _get_once(reference.url, timeout), max_retries)

    try:
        with Image.open(io.BytesIO(content)) as img:
            img.verify()
    except (OSError, SyntaxError) as e:
        raise FetchError(f"Rendering service did not return an image: {e}") from e

    return content


def output_format(output_path: str) -> str:
    """Return the PIL format name used to write ``output_path``.

    Raises:
        ValueError: If PIL cannot write images with that extension.
    """
    Image.init()
    dst_ext = os.path.splitext(output_path)[1].lower()
    dst_format = Image.registered_extensions().get(dst_ext)
    # Some registered formats (e.g. PSD) are read-only
    if dst_format is None or dst_format not in Image.SAVE:
        raise ValueError(f"Unsupported output image extension: '{dst_ext or output_path}'")
    return dst_format


def download_image(
    reference: ImageReference,
    output_path: str,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> str:
    """Download the referenced image and save it to ``output_path``.

    Converts the format via PIL when the output extension differs from the
    format the service served (e.g. .png -> .jpg).

    Returns:
        The output path where the image was saved.

    Raises:
        ValueError: If the output extension is not an image format PIL can write.
        FetchError: If the image could not be fetched.
    """
    dst_format = output_format(output_path)

    content = fetch_image_bytes(reference, timeout=timeout, max_retries=max_retries)

    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

    with Image.open(io.BytesIO(content)) as img:
        if img.format == dst_format:
            with open(output_path, "wb") as f:
                f.write(content)
        else:
            if dst_format == "JPEG" and img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            img.save(output_path, dst_format)

    logger.debug("Saved QR image to %s", output_path)
    return output_path
