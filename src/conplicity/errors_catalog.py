"""Actionable error catalog for Conplicity."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "docker_unreachable": {
        "what": "Could not reach the Docker daemon at {endpoint}.",
        "next": "Check that Docker is running and that `--docker-endpoint` points to it.",
    },
    "docker_timed_out": {
        "what": "A Docker call did not finish within {timeout}.",
        "next": "Raise `--run-timeout` or check why the daemon or the backup is slow.",
    },
    "image_unavailable": {
        "what": "Backup image {image} is not available locally and could not be pulled.",
        "next": "Check the image reference and registry credentials, or pull it manually.",
    },
    "remote_unreachable": {
        "what": "Failed to connect to the remote Conplicity instance at {address}.",
        "next": "Check `--remote-address` and that the instance is listening.",
    },
    "remote_protocol_mismatch": {
        "what": "The instance at {address} did not answer like a Conplicity instance.",
        "next": "Check that the address and the preshared key belong to the same instance.",
    },
    "missing_target_url": {
        "what": "No duplicity target URL configured.",
        "next": "Pass `--url`, set DUPLICITY_TARGET_URL, or add `target_url` to the config file.",
    },
    "invalid_volume_spec": {
        "what": "Invalid volume specification: {spec}",
        "next": "Use NAME=HOSTPATH, for example `--volume data=/var/lib/docker/volumes/data/_data`.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
