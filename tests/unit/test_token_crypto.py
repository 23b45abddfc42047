from insign.utils import token_crypto


def test_generate_and_parse_roundtrip():
    tid, secret, full = token_crypto.generate_token()
    assert full.startswith(token_crypto.TOKEN_PREFIX)
    parsed = token_crypto.parse_token(full)
    assert parsed is not None
    assert parsed.token_id == tid
    assert parsed.secret == secret


def test_parse_token_rejects_malformed_values():
    assert token_crypto.parse_token("") is None
    assert token_crypto.parse_token("abc_def") is None
    assert token_crypto.parse_token("isk_") is None
    assert token_crypto.parse_token("isk__secret") is None
    assert token_crypto.parse_token("isk_tokenid_") is None


def test_secret_may_contain_underscores():
    parsed = token_crypto.parse_token("isk_abcd1234_se_cr_et")
    assert parsed.token_id == "abcd1234"
    assert parsed.secret == "se_cr_et"


def test_display_parts():
    full = token_crypto.build_token_string("0123456789abcdef", "secretWXYZ")
    prefix, last_four = token_crypto.derive_display_parts(full)
    assert prefix == "01234567"
    assert last_four == "WXYZ"
    assert token_crypto.derive_display_parts("not-a-token") == ("", "")


def test_hash_and_verify_secret():
    encoded = token_crypto.hash_secret("s3cr3t-value")
    assert encoded.startswith("$argon2id$")
    assert token_crypto.verify_secret("s3cr3t-value", encoded)
    assert not token_crypto.verify_secret("wrong", encoded)
    assert not token_crypto.verify_secret("s3cr3t-value", "garbage")
    assert not token_crypto.verify_secret("", encoded)


def test_access_tokens_are_url_safe_and_sized():
    token = token_crypto.generate_access_token()
    assert len(token) == 32
    assert all(ch.isalnum() or ch in "_-" for ch in token)
    assert token != token_crypto.generate_access_token()


def test_webhook_secret_prefix():
    secret = token_crypto.generate_webhook_secret()
    assert secret.startswith("whsec_")
    assert len(secret) == len("whsec_") + 32


def test_lookup_hash_is_deterministic():
    assert token_crypto.hash_lookup_token("abc") == token_crypto.hash_lookup_token("abc")
    assert len(token_crypto.hash_lookup_token("abc")) == 64
