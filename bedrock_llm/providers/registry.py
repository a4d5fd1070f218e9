"""Provider registry: model id prefix -> provider family."""

from enum import Enum

from bedrock_llm.errors import ConfigurationError


class ProviderKind(str, Enum):
    """Model-provider families served by Bedrock.

    anthropic and ai21 take a raw prompt string; amazon takes
    inputText plus a generation config object.
    """

    AI21 = "ai21"
    ANTHROPIC = "anthropic"
    AMAZON = "amazon"


# Order matters: it is the order reported in error messages.
ALLOWED_PROVIDERS: list[str] = [kind.value for kind in ProviderKind]


def provider_name(model_id: str) -> str:
    """Leading dotted segment of a model id, e.g. "amazon" for "amazon.titan-tg1-large"."""
    return model_id.split(".")[0]


def lookup_provider(name: str) -> ProviderKind | None:
    """Map a provider name to its kind. Returns None if unknown."""
    try:
        return ProviderKind(name)
    except ValueError:
        return None


def resolve_provider(model_id: str) -> ProviderKind:
    """Get the provider kind for a model id, or raise ConfigurationError."""
    kind = lookup_provider(provider_name(model_id))
    if kind is None:
        raise ConfigurationError(
            f"Unknown model: '{model_id}', only these are supported: "
            f"{','.join(ALLOWED_PROVIDERS)}"
        )
    return kind
