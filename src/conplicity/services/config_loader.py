"""Configuration loader for Conplicity."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from conplicity.errors import ConplicityError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "image",
        "loglevel",
        "json",
        "log_file",
        "no_verify",
        "target_url",
        "full_if_older_than",
        "remove_older_than",
        "pushgateway_url",
        "docker_endpoint",
        "aws_access_key_id",
        "aws_secret_access_key",
        "swift_username",
        "swift_password",
        "swift_auth_url",
        "swift_tenant_name",
        "swift_region_name",
        "run_timeout",
        "volumes",
        "remote_address",
        "psk",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConplicityError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConplicityError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConplicityError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConplicityError(f"Unknown configuration keys: {unknown_list}")

        return parsed
