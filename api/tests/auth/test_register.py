"""
Tests for POST /api/v1/auth/register endpoint.

Registration creates a profile and returns its first API key.
"""

from httpx import AsyncClient


class TestRegisterSuccess:
    """Happy path registration scenarios."""

    async def test_register_with_valid_data_returns_201(
        self, async_client: AsyncClient, valid_registration_data: dict
    ):
        """Registration with valid data creates the profile and returns 201."""
        response = await async_client.post(
            "/api/v1/auth/register", json=valid_registration_data
        )
        assert response.status_code == 201

    async def test_register_returns_api_key_with_correct_prefix(
        self, async_client: AsyncClient, valid_registration_data: dict
    ):
        """Returned API key starts with 'as_live_' prefix."""
        response = await async_client.post(
            "/api/v1/auth/register", json=valid_registration_data
        )
        data = response.json()
        assert data["api_key"].startswith("as_live_")

    async def test_register_returns_profile_info(
        self, async_client: AsyncClient, valid_registration_data: dict
    ):
        """Response includes user_id, username, email, display_name and role."""
        response = await async_client.post(
            "/api/v1/auth/register", json=valid_registration_data
        )
        data = response.json()
        assert "user_id" in data
        assert data["username"] == valid_registration_data["username"]
        assert data["email"] == valid_registration_data["email"]
        assert data["display_name"] == "New Farmer"
        assert data["role"] == "farmer"

    async def test_registered_key_authenticates(
        self, async_client: AsyncClient, valid_registration_data: dict, auth_headers
    ):
        """The returned key works for authenticated endpoints."""
        response = await async_client.post(
            "/api/v1/auth/register", json=valid_registration_data
        )
        api_key = response.json()["api_key"]

        me = await async_client.get("/api/v1/users/me", headers=auth_headers(api_key))
        assert me.status_code == 200
        assert me.json()["username"] == "newfarmer"
        assert me.json()["followers"] == []
        assert me.json()["following"] == []

    async def test_register_defaults_role_to_user(self, async_client: AsyncClient):
        """Role defaults to 'user' when omitted."""
        response = await async_client.post(
            "/api/v1/auth/register",
            json={
                "username": "plainuser",
                "email": "plain@example.com",
                "display_name": "Plain User",
            },
        )
        assert response.status_code == 201
        assert response.json()["role"] == "user"

    async def test_register_farmer(self, async_client: AsyncClient):
        """Farmers can pick their own role."""
        response = await async_client.post(
            "/api/v1/auth/register",
            json={
                "username": "maizegrower",
                "email": "maize@example.com",
                "display_name": "Maize Grower",
                "role": "farmer",
            },
        )
        assert response.status_code == 201
        assert response.json()["role"] == "farmer"


class TestRegisterValidation:
    """Input validation tests."""

    async def test_register_missing_username_returns_422(self, async_client: AsyncClient):
        """Missing username field returns 422."""
        data = {"email": "test@example.com", "display_name": "Test"}
        response = await async_client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 422

    async def test_register_invalid_username_format_returns_422(
        self, async_client: AsyncClient, valid_registration_data: dict
    ):
        """Usernames with special characters are rejected."""
        data = {**valid_registration_data, "username": "bad-name!"}
        response = await async_client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 422

    async def test_register_username_with_uppercase_returns_422(
        self, async_client: AsyncClient, valid_registration_data: dict
    ):
        """Usernames must be lowercase."""
        data = {**valid_registration_data, "username": "NewFarmer"}
        response = await async_client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 422

    async def test_register_invalid_email_format_returns_422(
        self, async_client: AsyncClient, valid_registration_data: dict
    ):
        """Malformed email returns 422."""
        data = {**valid_registration_data, "email": "not-an-email"}
        response = await async_client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 422

    async def test_register_blank_display_name_returns_422(
        self, async_client: AsyncClient, valid_registration_data: dict
    ):
        """Display name cannot be blank."""
        data = {**valid_registration_data, "display_name": "   "}
        response = await async_client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 422

    async def test_register_admin_role_rejected(
        self, async_client: AsyncClient, valid_registration_data: dict
    ):
        """Admin is not a self-assignable role."""
        data = {**valid_registration_data, "role": "admin"}
        response = await async_client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_register_expert_role_rejected(
        self, async_client: AsyncClient, valid_registration_data: dict
    ):
        """Expert is granted by an operator, never chosen at sign-up."""
        data = {**valid_registration_data, "role": "expert", "specialization": "Maize diseases"}
        response = await async_client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_rejected_expert_signup_grants_no_review_access(
        self, async_client: AsyncClient, valid_registration_data: dict, test_user: dict, auth_headers
    ):
        """Falling back to a plain sign-up leaves the profile unable to review."""
        refused = await async_client.post(
            "/api/v1/auth/register",
            json={**valid_registration_data, "role": "expert"},
        )
        assert refused.status_code == 422

        registered = await async_client.post(
            "/api/v1/auth/register", json=valid_registration_data
        )
        assert registered.status_code == 201
        api_key = registered.json()["api_key"]

        created = await async_client.post(
            "/api/v1/submissions",
            json={"diagnosis": {"disease": "Rust"}, "image_data": "data:image/png;base64,AA=="},
            headers=auth_headers(test_user["api_key"]),
        )
        assert created.status_code == 201

        listing = await async_client.get(
            "/api/v1/submissions", headers=auth_headers(api_key)
        )
        assert listing.status_code == 200
        assert listing.json()["items"] == []

        submission_id = created.json()["id"]
        review = await async_client.post(
            f"/api/v1/submissions/{submission_id}/review",
            json={"status": "approved"},
            headers=auth_headers(api_key),
        )
        assert review.status_code == 403

    async def test_register_unknown_role_rejected(
        self, async_client: AsyncClient, valid_registration_data: dict
    ):
        """Unknown roles are rejected."""
        data = {**valid_registration_data, "role": "wizard"}
        response = await async_client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 422


class TestRegisterDuplicates:
    """Duplicate detection tests."""

    async def test_register_duplicate_username_returns_409(
        self, async_client: AsyncClient, valid_registration_data: dict
    ):
        """Registering the same username twice returns 409 CONFLICT."""
        await async_client.post("/api/v1/auth/register", json=valid_registration_data)
        data = {**valid_registration_data, "email": "other@example.com"}
        response = await async_client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    async def test_register_case_insensitive_email_duplicate(
        self, async_client: AsyncClient, valid_registration_data: dict
    ):
        """Email uniqueness ignores case."""
        await async_client.post("/api/v1/auth/register", json=valid_registration_data)
        data = {
            **valid_registration_data,
            "username": "otherfarmer",
            "email": "NEWFARMER@example.com",
        }
        response = await async_client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 409


class TestRegisterRateLimiting:
    """Rate limiting tests (5 per hour per IP)."""

    async def test_register_rate_limit_blocks_sixth(self, async_client: AsyncClient):
        """6th registration from same IP returns 429."""
        for i in range(5):
            data = {
                "username": f"ratelimituser{i}",
                "email": f"ratelimit{i}@example.com",
                "display_name": f"Rate Limit {i}",
            }
            response = await async_client.post("/api/v1/auth/register", json=data)
            assert response.status_code == 201

        data = {
            "username": "ratelimituser5",
            "email": "ratelimit5@example.com",
            "display_name": "Rate Limit 5",
        }
        response = await async_client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 429


class TestRegisterErrorFormat:
    """Error response format tests."""

    async def test_register_error_includes_error_object(self, async_client: AsyncClient):
        """Error response has 'error' object with code, message and request_id."""
        response = await async_client.post("/api/v1/auth/register", json={"username": "ab"})
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert "message" in error
        assert "request_id" in error
