"""Admin console access check.

The admin console is gated by a shared key sent in the X-API-Key header. It is a
convenience gate for the admin screens, not a security boundary.
"""

from typing import Annotated

from fastapi import Header, HTTPException


class AdminKeyValidator:
    """Validates admin keys against a configured set."""

    def __init__(self, admin_keys: list[str]) -> None:
        """Initialize validator with the accepted keys.

        Args:
            admin_keys: Accepted key strings

        Raises:
            ValueError: If admin_keys is empty
        """
        if not admin_keys:
            raise ValueError("At least one admin key must be provided")

        self.admin_keys = frozenset(admin_keys)

    def validate(self, key: str) -> bool:
        """Check whether a key is accepted."""
        return key in self.admin_keys


def check_admin_key(
    x_api_key: Annotated[str | None, Header()] = None,
    validator: AdminKeyValidator | None = None,
) -> str:
    """Resolve the admin key from the X-API-Key header.

    Args:
        x_api_key: Value of the X-API-Key header
        validator: Validator holding the accepted keys

    Returns:
        str: The accepted key

    Raises:
        HTTPException: 401 if the key is missing or not accepted
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API key")

    if validator is not None and not validator.validate(x_api_key):
        raise HTTPException(status_code=401, detail="Invalid API key")

    return x_api_key
