from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Web server
    SERVICE_HOST: str = Field(default="0.0.0.0")
    SERVICE_PORT: int = Field(default=8080)
    CORS_ALLOW_ORIGINS: str = Field(default="*", description="Comma separated origins or *")

    # Hosted chat-completion gateway
    AI_GATEWAY_URL: str = Field(
        default="https://ai.gateway.lovable.dev",
        description="Base URL of the OpenAI-compatible chat-completion gateway",
    )
    AI_GATEWAY_API_KEY: str = Field(default="", description="Bearer key for the gateway; required")
    AI_MODEL: str = Field(default="google/gemini-2.5-flash")
    AI_TOOL_NAME: str = Field(default="analyze_poverty_risk")
    HTTP_TIMEOUT: float | None = Field(default=None, description="Seconds; unset waits for the gateway")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


settings = Settings()
