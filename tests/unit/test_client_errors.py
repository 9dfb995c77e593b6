from __future__ import annotations

from src.client.errors import (
    ServiceError,
    ApiError,
    NetworkFailureError,
    NetworkTimeoutError,
)


class TestServiceError:
    def test_base_exception(self) -> None:
        error = ServiceError("Base service error")
        assert str(error) == "Base service error"
        assert isinstance(error, Exception)


class TestNetworkFailureError:
    def test_includes_url_and_reason(self) -> None:
        error = NetworkFailureError("http://localhost:3000/api/recipes", "Connection refused")
        assert "http://localhost:3000/api/recipes" in str(error)
        assert "Connection refused" in str(error)
        assert isinstance(error, ServiceError)


class TestNetworkTimeoutError:
    def test_network_timeout(self) -> None:
        error = NetworkTimeoutError("http://localhost:3000/api/recipes", 10.0)
        assert "10.0" in str(error)
        assert error.timeout_seconds == 10.0
        assert isinstance(error, NetworkFailureError)


class TestApiError:
    def test_includes_status_and_detail(self) -> None:
        error = ApiError(404, "Recipe not found: 123")
        assert "404" in str(error)
        assert error.detail == "Recipe not found: 123"
        assert error.is_not_found is True
        assert error.is_conflict is False

    def test_conflict(self) -> None:
        assert ApiError(409, "changed").is_conflict is True
