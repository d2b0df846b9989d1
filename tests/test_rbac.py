from datetime import timedelta

import pytest

from app.core.config import Settings
from app.core.errors import AuthenticationError
from app.core.rbac import is_compliance_manager, is_superadmin
from app.core.security import create_access_token, decode_access_token
from app.models.user import Role


class TestRoles:
    @pytest.mark.parametrize("role", ["HR", "ADMIN", "SUPERADMIN", "admin", Role.HR])
    def test_managers(self, role) -> None:
        assert is_compliance_manager(role)

    @pytest.mark.parametrize("role", ["USER", "", None, "OWNER", Role.USER])
    def test_non_managers(self, role) -> None:
        assert not is_compliance_manager(role)

    def test_superadmin(self) -> None:
        assert is_superadmin("SUPERADMIN")
        assert is_superadmin(Role.SUPERADMIN)
        assert not is_superadmin("ADMIN")


class TestTokens:
    def test_roundtrip_claims(self) -> None:
        settings = Settings(jwt_secret_key="k1")
        payload = decode_access_token(
            create_access_token(5, organization_id=2, role="HR", settings=settings), settings
        )
        assert payload["sub"] == "5"
        assert payload["org"] == 2
        assert payload["role"] == "HR"

    def test_wrong_key(self) -> None:
        token = create_access_token(5, settings=Settings(jwt_secret_key="k1"))
        with pytest.raises(AuthenticationError):
            decode_access_token(token, Settings(jwt_secret_key="k2"))

    def test_expired(self) -> None:
        settings = Settings(jwt_secret_key="k1")
        token = create_access_token(5, expires_delta=timedelta(minutes=-1), settings=settings)
        with pytest.raises(AuthenticationError):
            decode_access_token(token, settings)
