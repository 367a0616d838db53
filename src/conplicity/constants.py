"""Shared constants for Conplicity."""

DEFAULT_IMAGE = "camptocamp/duplicity:latest"
DEFAULT_DOCKER_ENDPOINT = "unix:///var/run/docker.sock"
DEFAULT_FULL_IF_OLDER_THAN = "15D"
DEFAULT_REMOVE_OLDER_THAN = "30D"

METRICS_JOB_NAME = "conplicity"
METRICS_CONTENT_TYPE = "text/plain; version=0.0.4"

SWIFT_AUTH_VERSION = "2"

# Outside the 0..255 range a process can exit with.
EXIT_CODE_UNKNOWN = -1
DUPLICITY_OK_EXIT_CODES = frozenset({0})

REMOVE_TIMEOUT_SECONDS = 30.0
HTTP_TIMEOUT_SECONDS = 30.0

CONTAINER_DATA_ROOT = "/data"
