"""Registry settings: YAML loader, environment overrides, Pydantic validation."""

import os
from pathlib import Path
from typing import Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from consolidator.core.errors import ConfigurationError

ENV_PREFIX = "CONSOLIDATOR_"

# environment variable suffix -> config field
_ENV_OVERRIDES = {
    "REGISTRY_HOST": "host",
    "REGISTRY_ID": "account_id",
    "REGISTRY_PASSWORD": "password",
    "TIMEOUT_SECONDS": "timeout_seconds",
}


# ── Registry Config ──────────────────────────────────────────────────


class RegistryConfig(BaseModel):
    """Connection and credential settings for the bibliographic registry."""

    host: str = "doi.crossref.org"
    scheme: Literal["http", "https"] = "http"
    account_id: Optional[str] = None
    password: Optional[str] = None
    timeout_seconds: float = Field(
        default=5.0, gt=0, description="Per-strategy wait for a registry response"
    )
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    max_workers: int = Field(default=4, ge=1, le=64)
    user_agent: str = "consolidator/0.1"

    @field_validator("host")
    @classmethod
    def strip_host(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("Registry host must not be blank")
        return v

    @field_validator("account_id", "password")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}"

    def require_credentials(self) -> tuple[str, str]:
        """Return (account_id, password) or raise ConfigurationError."""
        missing = [
            name
            for name, value in (("account_id", self.account_id), ("password", self.password))
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Registry credentials missing: {', '.join(missing)} "
                f"(set them in the config file or {ENV_PREFIX}REGISTRY_ID / "
                f"{ENV_PREFIX}REGISTRY_PASSWORD)"
            )
        return self.account_id, self.password


# ── Loader ───────────────────────────────────────────────────────────


def load_config(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> RegistryConfig:
    """Build a RegistryConfig from an optional YAML file plus environment.

    The YAML document may hold the settings at top level or under a
    ``registry:`` key. Environment variables win over the file.
    """
    raw: dict = {}
    if path is not None:
        raw = _read_yaml(Path(path))

    env = os.environ if env is None else env
    for suffix, field in _ENV_OVERRIDES.items():
        value = env.get(ENV_PREFIX + suffix)
        if value:
            raw[field] = value

    try:
        return RegistryConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid registry config: {exc}") from exc


def _read_yaml(path: Path) -> dict:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    if isinstance(data.get("registry"), dict):
        data = data["registry"]
    return dict(data)
