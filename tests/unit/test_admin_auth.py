"""Unit tests for the admin key check."""

import pytest
from fastapi import HTTPException

from restaurant_storefront.auth.admin_auth import AdminKeyValidator, check_admin_key


@pytest.mark.unit
class TestAdminKeyValidator:
    """Test suite for AdminKeyValidator."""

    def test_requires_at_least_one_key(self) -> None:
        """Test that an empty key list is rejected."""
        with pytest.raises(ValueError, match="At least one admin key must be provided"):
            AdminKeyValidator([])

    def test_validate(self) -> None:
        """Test accepted and rejected keys."""
        validator = AdminKeyValidator(["key-1", "key-2"])

        assert validator.validate("key-2") is True
        assert validator.validate("key-3") is False


@pytest.mark.unit
class TestCheckAdminKey:
    """Test suite for check_admin_key."""

    def test_missing_key(self) -> None:
        """Test that a missing header yields 401."""
        with pytest.raises(HTTPException) as exc_info:
            check_admin_key(None, AdminKeyValidator(["key-1"]))

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Missing API key"

    def test_invalid_key(self) -> None:
        """Test that an unknown key yields 401."""
        with pytest.raises(HTTPException) as exc_info:
            check_admin_key("wrong", AdminKeyValidator(["key-1"]))

        assert exc_info.value.detail == "Invalid API key"

    def test_valid_key(self) -> None:
        """Test that an accepted key is returned."""
        assert check_admin_key("key-1", AdminKeyValidator(["key-1"])) == "key-1"
