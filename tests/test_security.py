"""Tests for password and token hashing."""

from marias.security import generate_token, hash_password, hash_token, verify_password


def test_hash_and_verify():
    encoded = hash_password("s3cret")
    assert encoded.startswith("$2b$")
    assert verify_password("s3cret", encoded)
    assert not verify_password("wrong", encoded)


def test_salts_differ():
    assert hash_password("same") != hash_password("same")


def test_verify_rejects_garbage():
    assert not verify_password("pw", "not-a-hash")
    assert not verify_password("pw", "")
    assert not verify_password("pw", None)


def test_tokens_unique_and_hash_stable():
    t1, t2 = generate_token(), generate_token()
    assert t1 != t2
    assert hash_token(t1) == hash_token(t1)
    assert len(hash_token(t1)) == 64
