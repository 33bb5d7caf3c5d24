import time

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature
from jose import jws

from pushgate.core.exceptions import InvalidSubscription, SigningError
from pushgate.core.security import (
    audience_from_endpoint,
    b64_decode,
    b64url_encode,
    sign_vapid_jwt,
)
from tests.stubs import VAPID_SUBJECT, b64url_json


def _public_key(key_pair):
    return serialization.load_der_private_key(key_pair.private_key, password=None).public_key()


def test_vapid_jwt_header_and_claims(key_pair):
    token = sign_vapid_jwt("https://notify.windows.com", VAPID_SUBJECT, key_pair.private_key)
    header, payload, _ = token.split(".")

    assert b64url_json(header) == {"typ": "JWT", "alg": "ES256"}
    claims = b64url_json(payload)
    assert claims["aud"] == "https://notify.windows.com"
    assert claims["sub"] == VAPID_SUBJECT
    expected_exp = time.time() + 12 * 3600
    assert abs(claims["exp"] - expected_exp) < 60
    assert "=" not in token


def test_vapid_jwt_signature_verifies(key_pair):
    token = sign_vapid_jwt("https://fcm.googleapis.com", VAPID_SUBJECT, key_pair.private_key)
    pem = _public_key(key_pair).public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    jws.verify(token, pem.decode(), algorithms=["ES256"])


def test_vapid_jwt_signature_is_raw_r_and_s(key_pair):
    token = sign_vapid_jwt("https://fcm.googleapis.com", VAPID_SUBJECT, key_pair.private_key)
    signing_input, _, signature = token.rpartition(".")
    raw = b64_decode(signature)
    assert len(raw) == 64

    der = encode_dss_signature(int.from_bytes(raw[:32], "big"), int.from_bytes(raw[32:], "big"))
    _public_key(key_pair).verify(der, signing_input.encode("ascii"), ec.ECDSA(hashes.SHA256()))


def test_signing_with_bad_key_raises():
    with pytest.raises(SigningError):
        sign_vapid_jwt("https://notify.windows.com", VAPID_SUBJECT, b"\x00" * 10)


@pytest.mark.parametrize(
    "endpoint, audience",
    [
        ("https://notify.windows.com/w/xyz", "https://notify.windows.com"),
        ("https://fcm.googleapis.com:443/fcm/send/abc?x=1", "https://fcm.googleapis.com"),
        ("http://localhost:8080/push", "http://localhost"),
        ("https://[::1]:8443/push", "https://[::1]"),
    ],
)
def test_audience_from_endpoint(endpoint, audience):
    assert audience_from_endpoint(endpoint) == audience


@pytest.mark.parametrize("endpoint", ["", "not a url", "/relative/path", "https://[::1/broken"])
def test_audience_rejects_relative_or_broken_endpoints(endpoint):
    with pytest.raises(InvalidSubscription):
        audience_from_endpoint(endpoint)


def test_b64_decode_accepts_both_alphabets():
    data = bytes(range(250, 256)) + b"\xfb\xff"
    assert b64_decode(b64url_encode(data)) == data
    assert b64_decode("+/8=") == b"\xfb\xff"
    assert b64_decode("-_8") == b"\xfb\xff"


@pytest.mark.parametrize("value", ["", "   ", "!!!!"])
def test_b64_decode_rejects_garbage(value):
    with pytest.raises(ValueError):
        b64_decode(value)
