"""Shared domain models for Conplicity."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .constants import (
    DEFAULT_DOCKER_ENDPOINT,
    DEFAULT_FULL_IF_OLDER_THAN,
    DEFAULT_IMAGE,
    DEFAULT_REMOVE_OLDER_THAN,
    DUPLICITY_OK_EXIT_CODES,
    EXIT_CODE_UNKNOWN,
)


@dataclass(frozen=True)
class RunConfiguration:
    """Settings resolved once at startup and shared read-only by every service."""

    image: str = DEFAULT_IMAGE
    target_url: str = ""
    full_if_older_than: str = DEFAULT_FULL_IF_OLDER_THAN
    remove_older_than: str = DEFAULT_REMOVE_OLDER_THAN
    no_verify: bool = False
    pushgateway_url: str = ""
    docker_endpoint: str = DEFAULT_DOCKER_ENDPOINT
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    swift_username: str = ""
    swift_password: str = ""
    swift_auth_url: str = ""
    swift_tenant_name: str = ""
    swift_region_name: str = ""
    run_timeout: Optional[float] = None


@dataclass(frozen=True)
class BindMount:
    host_path: str
    container_path: str
    read_only: bool = False

    def to_spec(self) -> str:
        mode = "ro" if self.read_only else "rw"
        return f"{self.host_path}:{self.container_path}:{mode}"


@dataclass(frozen=True)
class BackupCommand:
    """Arguments handed to the backup tool and the mounts its container needs."""

    args: Tuple[str, ...]
    mounts: Tuple[BindMount, ...] = ()


@dataclass
class RunResult:
    exit_code: int = EXIT_CODE_UNKNOWN
    output: str = ""
    errors: List[str] = field(default_factory=list)

    @property
    def inspected(self) -> bool:
        return self.exit_code != EXIT_CODE_UNKNOWN

    @property
    def succeeded(self) -> bool:
        return self.exit_code in DUPLICITY_OK_EXIT_CODES


@dataclass(frozen=True)
class BackupTarget:
    """A volume selected for backup and the host directory holding its data."""

    name: str
    host_path: str


@dataclass(frozen=True)
class Volume:
    name: str
    id: str = ""
    mountpoint: str = ""
    backup_dir: str = ""
    driver: str = ""
    hostname: str = ""
    read_only: bool = False
    labels: Tuple[Tuple[str, str], ...] = ()

    @property
    def label_map(self) -> Dict[str, str]:
        return dict(self.labels)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Volume":
        """Build a volume from its JSON object; raise ``ValueError`` on a bad field."""
        labels = data.get("labels")
        if labels is None:
            labels = {}
        if not isinstance(labels, dict):
            raise ValueError(f"labels must be an object, got {type(labels).__name__}")
        read_only = data.get("read_only", False)
        if not isinstance(read_only, bool):
            raise ValueError(f"read_only must be a boolean, got {read_only!r}")
        return cls(
            name=str(data["name"]),
            id=str(data.get("id") or ""),
            mountpoint=str(data.get("mountpoint") or ""),
            backup_dir=str(data.get("backup_dir") or ""),
            driver=str(data.get("driver") or ""),
            hostname=str(data.get("hostname") or ""),
            read_only=read_only,
            labels=tuple((str(key), str(value)) for key, value in labels.items()),
        )


class MetricBatch:
    """Metric lines accumulated over a backup cycle, in insertion order."""

    def __init__(self, lines: Optional[List[str]] = None):
        self._lines: List[str] = list(lines or [])

    def append(self, line: str):
        self._lines.append(line)

    @property
    def lines(self) -> List[str]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._lines))
