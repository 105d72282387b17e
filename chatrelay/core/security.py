"""Caller input validation and credential masking."""
from typing import Any, Optional, Sequence, Tuple
from urllib.parse import urlsplit, urlunsplit

import httpx


class SecurityManager:
    """Checks run on every call before any network I/O."""

    ALLOWED_SCHEMES = ("http", "https")

    @staticmethod
    def validate_url(url: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Validate endpoint URL format.

        Args:
            url: Endpoint URL to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not url or not isinstance(url, str) or not url.strip():
            return False, "URL is required"

        try:
            parsed = httpx.URL(url.strip())
        except (httpx.InvalidURL, TypeError, ValueError):
            return False, "Invalid URL format"

        if parsed.scheme not in SecurityManager.ALLOWED_SCHEMES:
            return False, "URL must start with http:// or https://"
        if not parsed.host:
            return False, "Invalid URL format"

        return True, None

    @staticmethod
    def validate_api_key(api_key: Any) -> Tuple[bool, Optional[str]]:
        """Validate that an API key is present and not blank."""
        if not isinstance(api_key, str) or not api_key.strip():
            return False, "API key is required"
        return True, None

    @staticmethod
    def validate_messages(messages: Optional[Sequence[Any]]) -> Tuple[bool, Optional[str]]:
        """Validate that there is at least one message to send."""
        if not messages:
            return False, "No messages to send"
        return True, None

    @staticmethod
    def mask_api_key(api_key: Optional[str]) -> str:
        """
        Mask API key for logging (show only first 8 and last 4 characters).

        Args:
            api_key: API key to mask

        Returns:
            Masked API key string
        """
        if not api_key or len(api_key) < 12:
            return "***"

        return f"{api_key[:8]}...{api_key[-4:]}"

    @staticmethod
    def redact_url(url: str) -> str:
        """Drop the query string so keyed URLs (``?key=...``) stay out of logs."""
        parts = urlsplit(url)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
