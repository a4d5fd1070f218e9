"""Request/response adapter — translates prompts to and from provider wire shapes."""

from typing import Any

from bedrock_llm.errors import MalformedResponseError
from bedrock_llm.providers.registry import ProviderKind, lookup_provider

DEFAULT_MAX_TOKENS_TO_SAMPLE = 50


def _as_kind(provider: ProviderKind | str) -> ProviderKind | None:
    if isinstance(provider, ProviderKind):
        return provider
    return lookup_provider(provider)


def prepare_input(provider: ProviderKind | str, prompt: str) -> dict[str, Any]:
    """Build the InvokeModel request body for a provider.

    Unknown providers get the bare ``{"inputText": ...}`` shape. Model
    handles validate the provider at construction, so that arm is only
    reached by direct callers.
    """
    kind = _as_kind(provider)
    body: dict[str, Any] = {}

    if kind is ProviderKind.ANTHROPIC or kind is ProviderKind.AI21:
        body["prompt"] = prompt
    elif kind is ProviderKind.AMAZON:
        body["inputText"] = prompt
        body["textGenerationConfig"] = {}
    else:
        body["inputText"] = prompt

    if kind is ProviderKind.ANTHROPIC and "max_tokens_to_sample" not in body:
        body["max_tokens_to_sample"] = DEFAULT_MAX_TOKENS_TO_SAMPLE

    return body


def _dig(response: Any, path: tuple[str | int, ...], provider: str) -> str:
    """Follow a key/index path through a decoded response."""
    value = response
    try:
        for step in path:
            value = value[step]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedResponseError(
            f"Response for provider '{provider}' is missing {_format_path(path)}"
        ) from e

    if not isinstance(value, str):
        raise MalformedResponseError(
            f"Response for provider '{provider}' has non-string {_format_path(path)}: "
            f"{type(value).__name__}"
        )
    return value


def _format_path(path: tuple[str | int, ...]) -> str:
    out = ""
    for step in path:
        out += f"[{step}]" if isinstance(step, int) else (f".{step}" if out else step)
    return out


def prepare_output(provider: ProviderKind | str, response: Any, streaming: bool) -> str:
    """Extract generated text from a decoded response.

    A single stream chunk and a complete response have different shapes
    for ai21 and amazon, so ``streaming`` selects the path.
    """
    kind = _as_kind(provider)
    name = kind.value if kind is not None else str(provider)

    if kind is ProviderKind.ANTHROPIC:
        return _dig(response, ("completion",), name)

    if kind is ProviderKind.AI21:
        if streaming:
            return _dig(response, ("data", "text"), name)
        return _dig(response, ("completions", 0, "data", "text"), name)

    # amazon, and unknown providers that slipped past construction checks
    if streaming:
        return _dig(response, ("outputText",), name)
    return _dig(response, ("results", 0, "outputText"), name)
