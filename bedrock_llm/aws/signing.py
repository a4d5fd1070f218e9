"""AWS Signature V4 request signing and credential resolution."""

from dataclasses import dataclass, field
from typing import Any

import boto3
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest

from bedrock_llm.errors import CredentialsError

# Anything exposing access_key / secret_key / token, or a zero-arg
# callable returning such an object.
CredentialSource = Any


@dataclass(frozen=True)
class HttpRequest:
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


def _is_credentials(obj: Any) -> bool:
    return hasattr(obj, "access_key") and hasattr(obj, "secret_key")


def resolve_credentials(
    source: CredentialSource | None,
    *,
    profile: str | None = None,
    region: str | None = None,
):
    """Resolve a credential source to a frozen key set.

    Blocking: the default chain may hit the instance metadata service,
    so call this from a worker thread inside async code.
    """
    credentials = source
    if credentials is None:
        session = boto3.Session(profile_name=profile or None, region_name=region or None)
        credentials = session.get_credentials()
    elif callable(credentials) and not _is_credentials(credentials):
        credentials = credentials()

    if credentials is None:
        raise CredentialsError(
            "Unable to locate AWS credentials -- configure the environment, "
            "a shared profile, or pass credentials to the constructor"
        )

    # Refreshable credentials can rotate mid-signature; pin one snapshot.
    if hasattr(credentials, "get_frozen_credentials"):
        credentials = credentials.get_frozen_credentials()

    if not _is_credentials(credentials):
        raise CredentialsError(
            f"Unsupported credentials object: {type(credentials).__name__}"
        )
    return credentials


def sign_request(request: HttpRequest, credentials, region: str, service: str) -> HttpRequest:
    """Return a copy of ``request`` with SigV4 authentication headers added."""
    aws_request = AWSRequest(
        method=request.method,
        url=request.url,
        data=request.body,
        headers=dict(request.headers),
    )
    SigV4Auth(credentials, service, region).add_auth(aws_request)

    return HttpRequest(
        method=request.method,
        url=request.url,
        headers={k: v for k, v in aws_request.headers.items()},
        body=request.body,
    )
