"""Shared fixtures for the bedrock-llm test suite."""

import base64
import binascii
import json
import struct

import httpx
import pytest
from botocore.credentials import Credentials

from bedrock_llm.config.settings import get_settings

REGION = "us-east-1"
PROMPT = "What is your name?"
ANSWER = "Hello! My name is Claude."

CHUNK_HEADERS = {
    ":event-type": "chunk",
    ":content-type": "application/json",
    ":message-type": "event",
}

_SETTINGS_ENV = (
    "AWS_DEFAULT_REGION",
    "AWS_PROFILE",
    "BEDROCK_DEFAULT_MODEL",
    "BEDROCK_SERVICE_NAME",
    "BEDROCK_ENDPOINT_DOMAIN",
    "REQUEST_TIMEOUT",
    "CONNECT_TIMEOUT",
    "LOG_LEVEL",
    "AUDIT_LOG_FILE",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep the host's AWS/Bedrock env vars out of Settings."""
    for key in _SETTINGS_ENV:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(AWS_DEFAULT_REGION="eu-west-1", LOG_LEVEL="DEBUG")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()

    yield _override

    get_settings.cache_clear()


@pytest.fixture
def credentials() -> Credentials:
    """Static (non-session) test credentials."""
    return Credentials("AKIDEXAMPLE", "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY")


@pytest.fixture
def make_transport():
    """Factory fixture: MockTransport returning ``response`` and recording requests.

    ``response`` may be an httpx.Response or a callable taking the request.
    """
    def _make(response):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if callable(response):
                return response(request)
            return response

        return httpx.MockTransport(handler), requests

    return _make


@pytest.fixture
def forbidden_transport():
    """A transport that fails the test if anything is sent through it."""
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("transport must never be called")

    return httpx.MockTransport(handler)


def encode_event_body(payload) -> bytes:
    """Wrap a provider chunk the way Bedrock does: {"bytes": base64(json)}."""
    inner = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
    return json.dumps({"bytes": inner}).encode("utf-8")


def _encode_header(name: str, value: str) -> bytes:
    name_bytes = name.encode("utf-8")
    value_bytes = value.encode("utf-8")
    # type 7 = string
    return (
        struct.pack(">B", len(name_bytes)) + name_bytes
        + struct.pack(">BH", 7, len(value_bytes)) + value_bytes
    )


def build_event_frame(payload=None, headers=None, body: bytes | None = None) -> bytes:
    """Frame one event in the AWS binary event-stream format.

    Layout: total length, headers length, prelude CRC32, headers,
    payload, message CRC32 (all big-endian).
    """
    if body is None:
        body = encode_event_body(payload)
    if headers is None:
        headers = CHUNK_HEADERS

    header_bytes = b"".join(_encode_header(k, v) for k, v in headers.items())
    total_length = 12 + len(header_bytes) + len(body) + 4

    prelude = struct.pack(">II", total_length, len(header_bytes))
    prelude += struct.pack(">I", binascii.crc32(prelude) & 0xFFFFFFFF)
    message = prelude + header_bytes + body
    return message + struct.pack(">I", binascii.crc32(message) & 0xFFFFFFFF)


def stream_response(*chunks: bytes, status_code: int = 200) -> httpx.Response:
    """An event-stream response delivering ``chunks`` one read at a time."""
    async def body():
        for chunk in chunks:
            yield chunk

    return httpx.Response(
        status_code,
        content=body(),
        headers={"content-type": "application/vnd.amazon.eventstream"},
    )
