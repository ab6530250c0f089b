#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
"""
Outbound HTTP: importing data from external APIs and sending signed webhooks.

Thin httpx wrappers. A client can be passed in (tests use httpx.MockTransport);
otherwise a short-lived httpx.Client is created per call with a fixed timeout.
There is no retry.
"""
import hashlib
import hmac
import json as jsonlib
import logging

import httpx

from .errors import HttpError

logger = logging.getLogger("lapa")

WEBHOOK_USER_AGENT = "Lapa-Webhook/1.0"
SIGNATURE_HEADER = "X-Webhook-Signature"


def _client(client, timeout):
    if client is not None:
        return client, False
    return httpx.Client(timeout=timeout), True


def import_url(url, method="GET", headers=None, data=None, json=True, timeout=30, client=None):
    """
    Fetch url and return its decoded body.

      method  - HTTP method, default GET
      headers - dict of request headers
      data    - query parameters for GET, a JSON body otherwise
      json    - decode the response as JSON (default) or return the raw text
    """
    method = method.upper()
    kwargs = {"headers": headers or {}}
    if data is not None:
        if method == "GET":
            kwargs["params"] = data
        else:
            kwargs["json"] = data

    http, owned = _client(client, timeout)
    try:
        response = http.request(method, url, **kwargs)
        response.raise_for_status()
    except httpx.HTTPStatusError as ex:
        logger.error("Import from %s failed with status %s", url, ex.response.status_code)
        raise HttpError(f"External request failed with status {ex.response.status_code}", 502) from ex
    except httpx.HTTPError as ex:
        logger.error("Import from %s failed: %s", url, ex)
        raise HttpError("External request failed", 502) from ex
    finally:
        if owned:
            http.close()

    if not json:
        return response.text
    try:
        return response.json()
    except ValueError as ex:
        raise HttpError("External response is not valid JSON", 502) from ex


def sign(payload, secret):
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def webhook(url, data, secret=None, timeout=30, client=None):
    """POST data as JSON to url; returns True on a 2xx answer."""
    payload = jsonlib.dumps(data)
    headers = {"Content-Type": "application/json", "User-Agent": WEBHOOK_USER_AGENT}
    if secret:
        headers[SIGNATURE_HEADER] = sign(payload, secret)

    http, owned = _client(client, timeout)
    try:
        response = http.post(url, content=payload.encode("utf-8"), headers=headers)
    except httpx.HTTPError as ex:
        logger.error("Webhook to %s failed: %s", url, ex)
        return False
    finally:
        if owned:
            http.close()
    return 200 <= response.status_code < 300


def verify_webhook(payload, signature, secret):
    return hmac.compare_digest(sign(payload, secret), signature or "")
