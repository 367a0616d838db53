"""Backup container environment built from storage backend credentials."""

from typing import Dict, List, Tuple

from conplicity.constants import SWIFT_AUTH_VERSION
from conplicity.models import RunConfiguration


def _environment_pairs(config: RunConfiguration) -> List[Tuple[str, str]]:
    # duplicity expects every variable to be present, even when empty.
    return [
        ("AWS_ACCESS_KEY_ID", config.aws_access_key_id or ""),
        ("AWS_SECRET_ACCESS_KEY", config.aws_secret_access_key or ""),
        ("SWIFT_USERNAME", config.swift_username or ""),
        ("SWIFT_PASSWORD", config.swift_password or ""),
        ("SWIFT_AUTHURL", config.swift_auth_url or ""),
        ("SWIFT_TENANTNAME", config.swift_tenant_name or ""),
        ("SWIFT_REGIONNAME", config.swift_region_name or ""),
        ("SWIFT_AUTHVERSION", SWIFT_AUTH_VERSION),
    ]


def compose_environment(config: RunConfiguration) -> List[str]:
    """Return the ``KEY=value`` entries injected into a backup container."""
    return [f"{key}={value}" for key, value in _environment_pairs(config)]


def environment_mapping(config: RunConfiguration) -> Dict[str, str]:
    return dict(_environment_pairs(config))
