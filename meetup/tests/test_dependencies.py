"""Tests for dependency injection."""

import pytest
from unittest.mock import MagicMock, patch

from meetup import state
from meetup.errors import ServiceUnavailableError, UnauthorizedError


class TestOptionalResources:

    def test_get_optional_redis_returns_client_when_connected(self):
        from meetup.dependencies import get_optional_redis

        mock_redis = MagicMock()
        with patch.object(state, "redis_client", mock_redis):
            assert get_optional_redis() is mock_redis

    def test_get_optional_redis_returns_none_when_not_connected(self):
        from meetup.dependencies import get_optional_redis

        with patch.object(state, "redis_client", None):
            assert get_optional_redis() is None

    def test_get_optional_event_bus_returns_bus_when_initialized(self):
        from meetup.dependencies import get_optional_event_bus

        mock_bus = MagicMock()
        with patch.object(state, "event_bus", mock_bus):
            assert get_optional_event_bus() is mock_bus

    def test_get_optional_event_bus_returns_none_when_not_initialized(self):
        from meetup.dependencies import get_optional_event_bus

        with patch.object(state, "event_bus", None):
            assert get_optional_event_bus() is None


class TestGetStore:

    def test_get_store_returns_store(self):
        from meetup.dependencies import get_store

        mock_store = MagicMock()
        with patch.object(state, "store", mock_store):
            assert get_store() is mock_store

    def test_get_store_raises_when_not_initialized(self):
        from meetup.dependencies import get_store

        with patch.object(state, "store", None):
            with pytest.raises(ServiceUnavailableError) as exc_info:
                get_store()
            assert "Store not initialized" in str(exc_info.value.detail)


class TestGetCreatorId:

    def test_header_value_is_trimmed(self):
        from meetup.dependencies import get_creator_id

        assert get_creator_id(" user-1 ") == "user-1"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_header_is_unauthorized(self, value):
        from meetup.dependencies import get_creator_id

        with pytest.raises(UnauthorizedError):
            get_creator_id(value)
