import pyotp
import pytest

from insign.errors import ConflictError, ServiceError
from insign.services import mfa_service


@pytest.fixture
def user(org, make_user):
    return make_user(org, email="mfa@example.com")


def test_backup_codes_shape():
    codes = mfa_service.generate_backup_codes()
    assert len(codes) == mfa_service.BACKUP_CODE_COUNT
    assert len(set(codes)) == len(codes)
    assert all(len(c) == 9 and c[4] == "-" for c in codes)


def test_setup_is_pending_until_verified(db, user):
    method, url, codes = mfa_service.setup_totp(db, user)
    assert method.enabled is False
    assert url.startswith("otpauth://totp/")
    assert "Insign" in url
    assert len(codes) == 10
    assert user.mfa_enabled is False

    with pytest.raises(ConflictError):
        mfa_service.setup_totp(db, user)


def test_enable_requires_current_code(db, user):
    method, _, _ = mfa_service.setup_totp(db, user)
    current = pyotp.TOTP(method.secret).now()
    wrong = "000000" if current != "000000" else "111111"
    with pytest.raises(ServiceError) as exc:
        mfa_service.enable_method(db, user, method.id, wrong)
    assert exc.value.status_code == 400

    mfa_service.enable_method(db, user, method.id, pyotp.TOTP(method.secret).now())
    assert method.enabled is True
    assert user.mfa_enabled is True


def test_backup_code_is_single_use(db, user):
    method, _, codes = mfa_service.setup_totp(db, user)
    mfa_service.enable_method(db, user, method.id, pyotp.TOTP(method.secret).now())

    assert mfa_service.verify_login_code(db, user, codes[0].lower()) is True
    assert mfa_service.verify_login_code(db, user, codes[0]) is False
    assert len(method.backup_codes) == 9


def test_disable_clears_flag(db, user):
    method, _, _ = mfa_service.setup_totp(db, user)
    mfa_service.enable_method(db, user, method.id, pyotp.TOTP(method.secret).now())
    mfa_service.disable_method(db, user, method.id)
    assert user.mfa_enabled is False
    assert mfa_service.list_methods(db, user) == []
