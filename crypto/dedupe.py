"""
Blinded deduplication tags.

A tag is HMAC-SHA256(server pepper, content fingerprint). It only supports
exact equality lookups; without the pepper it says nothing about the
content, and two deployments with different peppers never share tags.
"""

import re
import hmac
import hashlib
import logging
from typing import Optional

from errors import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

FINGERPRINT_PATTERN = re.compile(r"^[a-f0-9]{64}$")


def content_fingerprint(normalized_text: str) -> str:
    """SHA-256 of normalized text as lowercase hex."""
    return hashlib.sha256(normalized_text.encode("utf-8")).hexdigest()


class DedupeTagger:
    """Computes blinded tags from content fingerprints."""

    def __init__(self, pepper: Optional[bytes], allow_unpeppered: bool = False):
        """
        Initialize the tagger.

        Args:
            pepper: Server-held secret. ``None`` selects degraded mode.
            allow_unpeppered: Must be True to accept degraded mode, where the
                tag is the raw fingerprint. Never acceptable in production.
        """
        if not pepper:
            if not allow_unpeppered:
                raise ConfigurationError(
                    "No dedupe pepper configured and unpeppered dedupe is not allowed"
                )
            logger.warning(
                "Dedupe tags are UNPEPPERED: tags equal raw content fingerprints. "
                "Do not run this configuration in production."
            )
        self._pepper = pepper or None

    @property
    def is_degraded(self) -> bool:
        """True when tags are raw fingerprints."""
        return self._pepper is None

    def tag(self, fingerprint: str) -> str:
        """
        Compute the blinded tag for a fingerprint.

        Raises:
            ValidationError: If the fingerprint is not 64 lowercase hex chars
        """
        if not isinstance(fingerprint, str) or not FINGERPRINT_PATTERN.match(fingerprint):
            raise ValidationError("invalid_format", "Invalid content hash.")

        if self._pepper is None:
            return fingerprint

        return hmac.new(self._pepper, fingerprint.encode("utf-8"), hashlib.sha256).hexdigest()
