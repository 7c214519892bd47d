#!/usr/bin/env python3
"""
Pytest tests for CORS configuration
Tests that the FastAPI application handles CORS requests from the admin console
"""

import pytest
from fastapi.testclient import TestClient

from dailyquiz.core.config import settings
from dailyquiz.main import app


class TestCORSConfiguration:
    """Test CORS middleware configuration"""

    def setup_method(self):
        """Set up test fixtures"""
        self.client = TestClient(app)
        self.frontend_origin = "http://localhost:3000"

    def test_cors_preflight_request(self):
        """Test CORS preflight OPTIONS request"""
        response = self.client.options(
            "/",
            headers={
                "Origin": self.frontend_origin,
                "Access-Control-Request-Method": "GET",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == self.frontend_origin
        assert "access-control-allow-methods" in response.headers
        assert "access-control-allow-headers" in response.headers

    def test_cors_simple_get_request(self):
        """Test simple GET request with CORS headers"""
        response = self.client.get(
            "/",
            headers={"Origin": self.frontend_origin},
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == self.frontend_origin
        assert response.headers["access-control-allow-credentials"] == "true"

    def test_root_endpoint(self):
        """Test the service banner on the root endpoint"""
        response = self.client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == f"{settings.PROJECT_NAME} is running"
        assert data["environment"] == settings.ENVIRONMENT

    def test_cors_preflight_on_compose_endpoint(self):
        """Test CORS preflight for the compose POST endpoint"""
        response = self.client.options(
            "/daily-quiz/compose",
            headers={
                "Origin": self.frontend_origin,
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type,Authorization",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == self.frontend_origin
        assert "POST" in response.headers.get("access-control-allow-methods", "").upper()


class TestCORSSecurityScenarios:
    """Test CORS security scenarios"""

    def setup_method(self):
        """Set up test fixtures"""
        self.client = TestClient(app)

    def test_random_origin_not_allowed(self):
        """Test that random origins are not echoed back"""
        response = self.client.get(
            "/",
            headers={"Origin": "http://evil-site.com"},
        )

        assert response.status_code == 200
        if "access-control-allow-origin" in response.headers:
            assert response.headers["access-control-allow-origin"] != "http://evil-site.com"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
