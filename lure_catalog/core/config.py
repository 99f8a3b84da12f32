"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from lure_catalog.core.errors import ConfigError

DEFAULT_DATA_DIR = Path.home() / ".lure_catalog"


def _check_url(name: str, value: str, schemes: tuple[str, ...]) -> str:
    """
    Validate a URL-valued environment variable.

    Raises:
        ConfigError: If the value is not an absolute URL with one of ``schemes``.
    """
    parsed = urlparse(value)
    if parsed.scheme not in schemes or not (parsed.netloc or parsed.scheme == "file"):
        raise ConfigError(f"{name} must be a {' or '.join(schemes)} URL, got {value!r}")
    return value


@dataclass
class Settings:
    """Runtime settings resolved from the environment."""

    image_storage_path: Path
    image_public_url: str
    deploy_hook_url: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        """
        Read IMAGE_STORAGE_PATH, IMAGE_PUBLIC_URL and DEPLOY_HOOK_URL.

        Raises:
            ConfigError: If a URL variable is set to something unusable.
        """
        storage_path = os.environ.get("IMAGE_STORAGE_PATH")
        path = Path(storage_path).expanduser() if storage_path else DEFAULT_DATA_DIR / "images"

        public_url = os.environ.get("IMAGE_PUBLIC_URL", "").strip()
        if public_url:
            _check_url("IMAGE_PUBLIC_URL", public_url, ("http", "https", "file"))
        else:
            public_url = path.resolve().as_uri()

        deploy_hook_url = os.environ.get("DEPLOY_HOOK_URL", "").strip() or None
        if deploy_hook_url:
            _check_url("DEPLOY_HOOK_URL", deploy_hook_url, ("http", "https"))

        return cls(
            image_storage_path=path,
            image_public_url=public_url.rstrip("/"),
            deploy_hook_url=deploy_hook_url,
        )
