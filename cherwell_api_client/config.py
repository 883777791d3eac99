"""Environment-driven settings for :class:`~cherwell_api_client.CherwellClient`.

Values are read from ``CHERWELL_*`` environment variables or from a
``.env`` file in the working directory, e.g.::

    CHERWELL_BASE_URI=https://cherwell.example.com/CherwellAPI/
    CHERWELL_USERNAME=api-user
    CHERWELL_PASSWORD=secret
    CHERWELL_CLIENT_ID=00000000-0000-0000-0000-000000000000
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CherwellSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHERWELL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_uri: str = Field(..., description="Root of the Cherwell REST API")
    username: str
    password: str = ""
    client_id: str
    auth_mode: str = "Internal"
    grant_type: str = "password"
    timeout: Optional[float] = Field(None, description="Request timeout in seconds")
    raise_errors: bool = False
