"""Display wrapper that renders a resolved QR image reference."""

from html import escape

from qr_image_resolver import DEFAULT_SIZE, IMG_CLASS
from qr_image_resolver.resolver import BaseResolver, ImageReference, resolve


def render_img(reference: ImageReference) -> str:
    """Render an image reference as an HTML ``<img>`` element.

    The URL and attributes are emitted verbatim (HTML-escaped only), with the
    fixed rounded-corner class applied.
    """
    attrs = [
        ("src", reference.url),
        ("alt", reference.alt_text),
        ("width", str(reference.width)),
        ("height", str(reference.height)),
        ("class", IMG_CLASS),
        ("loading", reference.loading_hint.value),
    ]
    rendered = " ".join(f'{key}="{escape(val, quote=True)}"' for key, val in attrs)
    return f"<img {rendered} />"


def to_dict(reference: ImageReference) -> dict:
    """Attribute mapping for display clients that do not speak HTML."""
    return {
        "url": reference.url,
        "width": reference.width,
        "height": reference.height,
        "alt": reference.alt_text,
        "loading": reference.loading_hint.value,
        "class": IMG_CLASS,
    }


class QRCode:
    """A QR code image element, resolved once when created.

    Args:
        value: Text to encode.
        size: Square pixel size. Default 128.
        resolver: Resolver to use. Defaults to the remote rendering service.
    """

    def __init__(self, value: str, size: int = DEFAULT_SIZE, resolver: BaseResolver | None = None):
        if resolver is None:
            self._reference = resolve(value, size)
        else:
            self._reference = resolver.resolve(value, size)

    @property
    def reference(self) -> ImageReference:
        return self._reference

    def render(self) -> str:
        return render_img(self._reference)

    def __html__(self) -> str:
        # Lets Jinja2/MarkupSafe templates embed the element without escaping
        return self.render()

    def __str__(self) -> str:
        return self.render()
