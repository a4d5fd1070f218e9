"""AWS Bedrock model — signed InvokeModel calls over httpx.

One ``Bedrock`` instance is one model handle. Its configuration is fixed
at construction and every ``call`` performs exactly one HTTP request,
with no retries.
"""

import asyncio
import json
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from bedrock_llm.aws.eventstream import EventStreamDecoder, decode_event_payload, validate_event
from bedrock_llm.aws.signing import CredentialSource, HttpRequest, resolve_credentials, sign_request
from bedrock_llm.config.settings import get_settings
from bedrock_llm.errors import (
    ConfigurationError,
    MalformedResponseError,
    StreamDecodeError,
    TransportError,
)
from bedrock_llm.llms.base import LLM, TokenCallback, notify_token
from bedrock_llm.logging.audit import log_dispatch, log_request_rejected, log_stream_failure
from bedrock_llm.providers.adapter import prepare_input, prepare_output
from bedrock_llm.providers.registry import ProviderKind, resolve_provider


@dataclass(frozen=True)
class InvocationConfig:
    model: str
    region: str
    provider: ProviderKind
    credentials: CredentialSource = None
    temperature: float | None = None
    max_tokens: int | None = None
    streaming: bool = False
    service: str = "bedrock"
    endpoint_domain: str = "amazonaws.com"
    profile: str = ""
    timeout: float = 60.0
    connect_timeout: float = 10.0


class Bedrock(LLM):
    """Text completion against a Bedrock-hosted ai21, anthropic or amazon model.

    Credentials come from the ``credentials`` argument (an object with
    access_key/secret_key/token, or a zero-arg callable returning one) or,
    if omitted, from the default boto3 chain at call time.

    Example:
        llm = Bedrock(model="amazon.titan-tg1-large", region="us-west-2")
        text = await llm.call("Tell me a joke.")
    """

    def __init__(
        self,
        model: str | None = None,
        region: str | None = None,
        credentials: CredentialSource = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        streaming: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
        on_token: TokenCallback | None = None,
    ):
        settings = get_settings()

        if model is None:
            model = settings.bedrock_default_model
        provider = resolve_provider(model)

        region = region or settings.aws_default_region
        if not region:
            raise ConfigurationError(
                "Please set the AWS_DEFAULT_REGION environment variable or pass it "
                "to the constructor as the region field."
            )

        self.config = InvocationConfig(
            model=model,
            region=region,
            provider=provider,
            credentials=credentials,
            temperature=temperature,
            max_tokens=max_tokens,
            streaming=streaming,
            service=settings.bedrock_service_name,
            endpoint_domain=settings.bedrock_endpoint_domain,
            profile=settings.aws_profile,
            timeout=settings.request_timeout,
            connect_timeout=settings.connect_timeout,
        )
        self._transport = transport
        self._on_token = on_token
        self._client: httpx.AsyncClient | None = None

    @property
    def llm_type(self) -> str:
        return "bedrock"

    @property
    def identifying_params(self) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "provider": self.config.provider.value,
            "region": self.config.region,
            "streaming": self.config.streaming,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

    @property
    def endpoint_host(self) -> str:
        cfg = self.config
        return f"{cfg.service}.{cfg.region}.{cfg.endpoint_domain}"

    @property
    def endpoint_url(self) -> str:
        action = "invoke-with-response-stream" if self.config.streaming else "invoke"
        return f"https://{self.endpoint_host}/model/{quote(self.config.model, safe='')}/{action}"

    def build_request(self, prompt: str) -> HttpRequest:
        """Build the unsigned POST request for ``prompt``."""
        body = prepare_input(self.config.provider, prompt)
        return HttpRequest(
            method="POST",
            url=self.endpoint_url,
            headers={
                # SigV4 signs the host header
                "host": self.endpoint_host,
                "accept": "application/json",
                "Content-Type": "application/json",
            },
            body=json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8"),
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                timeout=httpx.Timeout(self.config.timeout, connect=self.config.connect_timeout),
            )
        return self._client

    async def _sign(self, request: HttpRequest) -> HttpRequest:
        cfg = self.config
        credentials = await asyncio.to_thread(
            resolve_credentials, cfg.credentials, profile=cfg.profile, region=cfg.region
        )
        return sign_request(request, credentials, cfg.region, cfg.service)

    async def _call(self, prompt: str, on_token: TokenCallback | None = None) -> str:
        cfg = self.config
        observer = on_token or self._on_token
        signed = await self._sign(self.build_request(prompt))
        url = signed.url

        log_dispatch(url, streaming=cfg.streaming, body_length=len(signed.body))

        client = await self._get_client()
        try:
            async with client.stream(
                signed.method, url, headers=signed.headers, content=signed.body
            ) as response:
                if not 200 <= response.status_code < 300:
                    await response.aread()
                    log_request_rejected(url, response.status_code)
                    raise TransportError(
                        f"Failed to access underlying url '{url}': got "
                        f"{response.status_code} {response.reason_phrase}: {response.text}",
                        url=url,
                        status_code=response.status_code,
                        reason=response.reason_phrase,
                        body=response.text,
                    )

                if cfg.streaming:
                    return await self._decode_stream(response, observer)

                await response.aread()
                try:
                    payload = response.json()
                except ValueError as e:
                    raise MalformedResponseError(
                        f"Response from '{url}' is not valid JSON"
                    ) from e
                return prepare_output(cfg.provider, payload, streaming=False)

        except httpx.ConnectError as e:
            raise TransportError(f"Cannot reach Bedrock endpoint '{url}'", url=url) from e
        except httpx.TimeoutException as e:
            raise TransportError(f"Bedrock endpoint '{url}' timed out", url=url) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Bedrock transport error for '{url}': {e}", url=url) from e

    @staticmethod
    async def _read_chunks(response: httpx.Response) -> AsyncIterator[bytes]:
        """Raw body chunks as they arrive. Single pass; ends with the body."""
        async for chunk in response.aiter_bytes():
            if chunk:
                yield chunk

    async def _decode_stream(
        self, response: httpx.Response, observer: TokenCallback | None
    ) -> str:
        provider = self.config.provider
        decoder = EventStreamDecoder()
        accumulated_text: list[str] = []

        try:
            async for raw in self._read_chunks(response):
                for event in decoder.feed(raw):
                    validate_event(event, raw)
                    text = prepare_output(provider, decode_event_payload(event), streaming=True)
                    # Observer finishes before the next chunk is read
                    await notify_token(observer, text)
                    accumulated_text.append(text)
            decoder.close()
        except StreamDecodeError:
            log_stream_failure(
                str(response.request.url),
                response.status_code,
                model=self.config.model,
                fragments=len(accumulated_text),
            )
            raise

        return "".join(accumulated_text)

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
