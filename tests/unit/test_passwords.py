import pytest

from insign.utils.passwords import check_password_strength, password_policy_errors, validate_password


def test_policy_accepts_strong_password():
    assert password_policy_errors("Str0ng!Passw0rd") == []
    assert validate_password("Str0ng!Passw0rd") == "Str0ng!Passw0rd"


@pytest.mark.parametrize(
    "password, message",
    [
        ("S0!a", "Password must be at least 8 characters"),
        ("str0ng!password", "Password must contain at least one uppercase letter"),
        ("STR0NG!PASSWORD", "Password must contain at least one lowercase letter"),
        ("Strong!Password", "Password must contain at least one number"),
        ("Str0ngPassw0rd", "Password must contain at least one special character"),
    ],
)
def test_policy_violations(password, message):
    assert message in password_policy_errors(password)
    with pytest.raises(ValueError):
        validate_password(password)


def test_strength_scoring():
    weak = check_password_strength("abc")
    assert weak["score"] == 0
    assert weak["label"] == "Very Weak"
    assert weak["suggestions"]

    strong = check_password_strength("Correct-Horse-42")
    assert strong["score"] == 5
    assert strong["label"] == "Strong"
    assert strong["suggestions"] == []
