import jwt
import pytest

from atams.exceptions import UnauthorizedException
from app.services.jwt_service import JwtService


def test_issue_and_verify(jwt_service):
    token = jwt_service.issue_token(42, role_level=50)
    assert jwt_service.verify_token(token) == {"user_id": 42, "role_level": 50}


def test_expired_token(jwt_service):
    token = jwt_service.issue_token(42, expires_in=-10)
    with pytest.raises(UnauthorizedException) as exc:
        jwt_service.verify_token(token)
    assert exc.value.message == "Token expired"


def test_wrong_secret(jwt_service, config):
    other = JwtService(config.model_copy(update={"IDENTITY_JWT_SECRET": "another-secret"}))
    with pytest.raises(UnauthorizedException):
        jwt_service.verify_token(other.issue_token(42))


def test_non_numeric_subject(jwt_service, config):
    token = jwt.encode({"sub": "alice", "exp": 9999999999}, config.IDENTITY_JWT_SECRET, algorithm="HS256")
    with pytest.raises(UnauthorizedException):
        jwt_service.verify_token(token)


def test_role_level_defaults_to_employee(jwt_service, config):
    token = jwt.encode({"sub": "5", "exp": 9999999999}, config.IDENTITY_JWT_SECRET, algorithm="HS256")
    assert jwt_service.verify_token(token)["role_level"] == 1
