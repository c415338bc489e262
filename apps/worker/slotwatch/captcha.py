"""
Captcha image extraction.

The site renders the captcha as a CSS background image holding a data URI:
    background-image: url("data:image/jpeg;base64,/9j/4AAQ...")
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from io import BytesIO
from urllib.parse import unquote_to_bytes

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

_URL_WRAPPER = re.compile(r"""url\(\s*(['"]?)(?P<uri>.*?)\1\s*\)""", re.DOTALL)
_DATA_URI = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[^;,]+)*?)(?P<b64>;base64)?,(?P<data>.*)$",
    re.DOTALL,
)


class CaptchaImageError(Exception):
    """Captcha markup did not contain a usable image."""


@dataclass(frozen=True)
class CaptchaImage:
    """Decoded captcha bytes plus the declared image type."""
    data: bytes
    image_type: str = "image/jpeg"

    @property
    def suffix(self) -> str:
        subtype = self.image_type.split("/", 1)[-1]
        return "." + ("jpeg" if subtype == "jpg" else subtype.split("+", 1)[0])

    def verify(self) -> None:
        """Raise CaptchaImageError unless the bytes decode as an image."""
        try:
            with Image.open(BytesIO(self.data)) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise CaptchaImageError(f"Captcha is not a valid {self.image_type}: {exc}") from exc

    def save(self, directory: str | None = None) -> str:
        """Write an audit copy and return its path. The file is kept."""
        fd, path = tempfile.mkstemp(suffix=self.suffix, prefix="captcha-", dir=directory or None)
        with os.fdopen(fd, "wb") as fh:
            fh.write(self.data)
        logger.info("Wrote %d bytes of %s data to %s", len(self.data), self.image_type, path)
        return path


def strip_url_wrapper(style_value: str) -> str:
    """Return the URI inside a CSS url(...) value."""
    match = _URL_WRAPPER.search(style_value or "")
    if not match or not match.group("uri"):
        raise CaptchaImageError(f"No url(...) in background image: {style_value!r}")
    return match.group("uri")


def decode_data_uri(uri: str) -> CaptchaImage:
    """Decode a data: URI into a CaptchaImage."""
    match = _DATA_URI.match(uri.strip())
    if not match:
        raise CaptchaImageError("Background image is not a data URI")

    mime = match.group("mime") or "text/plain"
    if not mime.startswith("image/"):
        raise CaptchaImageError(f"Data URI holds {mime}, not an image")

    payload = match.group("data")
    if match.group("b64"):
        try:
            data = base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise CaptchaImageError(f"Bad base64 in data URI: {exc}") from exc
    else:
        data = unquote_to_bytes(payload)

    if not data:
        raise CaptchaImageError("Data URI is empty")
    return CaptchaImage(data=data, image_type=mime)


def image_from_style(style_value: str) -> CaptchaImage:
    """Extract and decode the captcha from a background-image style value."""
    image = decode_data_uri(strip_url_wrapper(style_value))
    logger.info("Data URI contains %d bytes of %s data", len(image.data), image.image_type)
    return image
