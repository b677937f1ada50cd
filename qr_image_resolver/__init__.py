"""QR Image Resolver: embeddable QR code image references backed by a remote renderer."""

__version__ = "1.0.0"

# Shared constants
DEFAULT_SIZE = 128  # Pixel size used when the caller omits one
DEFAULT_ENDPOINT = "https://api.qrserver.com/v1/create-qr-code/"
ENDPOINT_ENV_VAR = "QR_IMAGE_ENDPOINT"
ALT_TEXT = "QR Code"
IMG_CLASS = "rounded"
