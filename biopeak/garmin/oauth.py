"""
Request signing for Garmin's wellness API.

OAuth 1.0a (HMAC-SHA1) for the legacy endpoints, bearer headers for OAuth 2.0.
Nothing is cached: every call gets a fresh nonce, timestamp and signature.
"""
import base64
import hashlib
import hmac
import secrets
import string
import time
from typing import Dict, Optional
from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"

_NONCE_ALPHABET = string.ascii_letters + string.digits


def percent_encode(value) -> str:
    # RFC 3986 unreserved characters only
    return quote(str(value), safe="~")


def generate_nonce(length: int = 32) -> str:
    return "".join(secrets.choice(_NONCE_ALPHABET) for _ in range(length))


def _split_url(url: str) -> tuple[str, Dict[str, str]]:
    parts = urlsplit(url)
    base_url = urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, "", ""))
    return base_url, dict(parse_qsl(parts.query, keep_blank_values=True))


def _normalize_params(params: Dict[str, str]) -> str:
    encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in params.items())
    return "&".join(f"{k}={v}" for k, v in encoded)


def signature_base_string(method: str, url: str, params: Dict[str, str]) -> str:
    base_url, query = _split_url(url)
    merged = {**query, **params}
    return "&".join([
        method.upper(),
        percent_encode(base_url),
        percent_encode(_normalize_params(merged)),
    ])


def generate_signature(
    method: str,
    url: str,
    params: Dict[str, str],
    consumer_secret: str,
    token_secret: str = "",
) -> str:
    base_string = signature_base_string(method, url, params)
    signing_key = f"{percent_encode(consumer_secret or '')}&{percent_encode(token_secret or '')}"
    digest = hmac.new(signing_key.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("utf-8")


def build_authorization_header(params: Dict[str, str]) -> str:
    return "OAuth " + ", ".join(
        f'{percent_encode(k)}="{percent_encode(params[k])}"' for k in sorted(params)
    )


def sign_request(
    method: str,
    url: str,
    *,
    consumer_key: str,
    consumer_secret: str,
    token: str,
    token_secret: str,
    params: Optional[Dict[str, str]] = None,
    nonce: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> str:
    """Return the `Authorization` header value for one OAuth 1.0a request."""
    oauth_params = {
        "oauth_consumer_key": consumer_key,
        "oauth_token": token,
        "oauth_nonce": nonce or generate_nonce(),
        "oauth_signature_method": SIGNATURE_METHOD,
        "oauth_timestamp": str(timestamp if timestamp is not None else int(time.time())),
        "oauth_version": OAUTH_VERSION,
    }
    signature = generate_signature(
        method,
        url,
        {**(params or {}), **oauth_params},
        consumer_secret,
        token_secret,
    )
    oauth_params["oauth_signature"] = signature
    return build_authorization_header(oauth_params)


def bearer_header(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}
