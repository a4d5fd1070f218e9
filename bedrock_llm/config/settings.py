"""Library settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # AWS
    # Fallback region when none is passed to the model constructor
    aws_default_region: str = ""
    aws_profile: str = ""  # Empty = default credential chain

    # Bedrock endpoint
    bedrock_default_model: str = "amazon.titan-tg1-large"
    bedrock_service_name: str = "bedrock"
    bedrock_endpoint_domain: str = "amazonaws.com"

    # HTTP transport
    request_timeout: float = 60.0
    connect_timeout: float = 10.0

    # Logging
    log_level: str = "INFO"
    audit_log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
