import logging
import os
import socket
import sys

import click
import requests
import structlog
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .core import Conplicity
from .constants import (
    DEFAULT_DOCKER_ENDPOINT,
    DEFAULT_FULL_IF_OLDER_THAN,
    DEFAULT_IMAGE,
    DEFAULT_REMOVE_OLDER_THAN,
)
from .errors import ConnectivityError, ConplicityError, ProtocolMismatchError
from .errors_catalog import actionable_error
from .models import BackupTarget, RunConfiguration
from .services.config_loader import ConfigLoader
from .services.inventory import RemoteInventoryClient

DEFAULT_CONFIG_FILE = ".conplicity.yml"
LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
}


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _load_config(config_path):
    config_loader = ConfigLoader()
    resolved_config = config_path
    if resolved_config is None:
        default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
        if os.path.exists(default_config_path):
            resolved_config = default_config_path

    try:
        return config_loader.load(resolved_config)
    except ConplicityError as exc:
        raise click.ClickException(str(exc)) from exc


def _resolve_flag(cli_value, config, key):
    value = _resolve_option(cli_value, config, key, default=False)
    if not isinstance(value, bool):
        raise click.ClickException(f"Config key '{key}' must be true or false, got {value!r}.")
    return value


def _json_handler():
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[
                structlog.stdlib.add_logger_name,
                structlog.processors.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
            ],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
        )
    )
    return handler


def _setup_logging(loglevel, log_file, json_output=False):
    logger = logging.getLogger("conplicity")
    level = LOG_LEVELS[loglevel]
    root = logging.getLogger()
    root.setLevel(level)
    logger.setLevel(level)

    if json_output:
        for handler in list(root.handlers):
            if isinstance(handler, RichHandler):
                root.removeHandler(handler)
        root.addHandler(_json_handler())

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)
    return logger


def _parse_volume(spec: str) -> BackupTarget:
    name, sep, host_path = spec.partition("=")
    if not sep or not name.strip() or not host_path.strip():
        raise click.ClickException(actionable_error("invalid_volume_spec", spec=spec))
    return BackupTarget(name=name.strip(), host_path=host_path.strip())


def _resolve_targets(volume_specs, config_values):
    if volume_specs:
        return [_parse_volume(spec) for spec in volume_specs]

    configured = config_values.get("volumes") or {}
    if not isinstance(configured, dict):
        raise click.ClickException("Config key 'volumes' must map volume names to host paths.")
    return [BackupTarget(name=str(name), host_path=str(path)) for name, path in configured.items()]


@click.group()
@click.version_option(__version__, "-V", "--version", prog_name="Conplicity")
def main():
    """Back up Docker volumes with duplicity."""


@main.command()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option(
    "--volume",
    "volumes",
    multiple=True,
    help="Volume to back up as NAME=HOSTPATH. Repeat for several volumes.",
)
@click.option("-i", "--image", envvar="DUPLICITY_DOCKER_IMAGE", help="The duplicity docker image.")
@click.option(
    "-l",
    "--loglevel",
    envvar="CONPLICITY_LOG_LEVEL",
    type=click.Choice(list(LOG_LEVELS), case_sensitive=False),
    default=None,
    help="Log level (default: info).",
)
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "-j",
    "--json",
    "json_output",
    is_flag=True,
    default=None,
    envvar="JSON_OUTPUT",
    help="Log as JSON (to stderr).",
)
@click.option(
    "--no-verify",
    is_flag=True,
    default=None,
    envvar="CONPLICITY_NO_VERIFY",
    help="Do not verify backups.",
)
@click.option("-u", "--url", "target_url", envvar="DUPLICITY_TARGET_URL", help="The duplicity target URL to push to.")
@click.option(
    "--full-if-older-than",
    envvar="CONPLICITY_FULL_IF_OLDER_THAN",
    help=f"Age after which a full backup must be performed (default: {DEFAULT_FULL_IF_OLDER_THAN}).",
)
@click.option(
    "--remove-older-than",
    envvar="CONPLICITY_REMOVE_OLDER_THAN",
    help=f"Age after which backups are removed (default: {DEFAULT_REMOVE_OLDER_THAN}).",
)
@click.option("-g", "--gateway-url", "pushgateway_url", envvar="PUSHGATEWAY_URL", help="The Prometheus push gateway URL.")
@click.option("-e", "--docker-endpoint", envvar="DOCKER_ENDPOINT", help="The Docker endpoint.")
@click.option("--aws-access-key-id", envvar="AWS_ACCESS_KEY_ID", help="The AWS access key ID.")
@click.option("--aws-secret-access-key", envvar="AWS_SECRET_ACCESS_KEY", help="The AWS secret access key.")
@click.option("--swift-username", envvar="SWIFT_USERNAME", help="The Swift user name.")
@click.option("--swift-password", envvar="SWIFT_PASSWORD", help="The Swift password.")
@click.option("--swift-auth-url", envvar="SWIFT_AUTHURL", help="The Swift auth URL.")
@click.option("--swift-tenant-name", envvar="SWIFT_TENANTNAME", help="The Swift tenant name.")
@click.option("--swift-region-name", envvar="SWIFT_REGIONNAME", help="The Swift region name.")
@click.option(
    "--run-timeout",
    type=float,
    default=None,
    help="Seconds after which a single duplicity run is abandoned. Unlimited by default.",
)
def backup(
    config,
    volumes,
    image,
    loglevel,
    log_file,
    json_output,
    no_verify,
    target_url,
    full_if_older_than,
    remove_older_than,
    pushgateway_url,
    docker_endpoint,
    aws_access_key_id,
    aws_secret_access_key,
    swift_username,
    swift_password,
    swift_auth_url,
    swift_tenant_name,
    swift_region_name,
    run_timeout,
):
    """Run one backup cycle over the given volumes."""
    config_values = _load_config(config)

    loglevel = str(_resolve_option(loglevel, config_values, "loglevel", default="info")).lower()
    if loglevel not in LOG_LEVELS:
        raise click.ClickException(f"Wrong log level '{loglevel}'")
    log_file = _resolve_option(log_file, config_values, "log_file")
    json_output = _resolve_flag(json_output, config_values, "json")
    logger = _setup_logging(loglevel, log_file, json_output=json_output)

    raw_timeout = _resolve_option(run_timeout, config_values, "run_timeout")
    run_config = RunConfiguration(
        image=_resolve_option(image, config_values, "image", default=DEFAULT_IMAGE),
        target_url=_resolve_option(target_url, config_values, "target_url", default=""),
        full_if_older_than=str(
            _resolve_option(
                full_if_older_than,
                config_values,
                "full_if_older_than",
                default=DEFAULT_FULL_IF_OLDER_THAN,
            )
        ),
        remove_older_than=str(
            _resolve_option(
                remove_older_than,
                config_values,
                "remove_older_than",
                default=DEFAULT_REMOVE_OLDER_THAN,
            )
        ),
        no_verify=_resolve_flag(no_verify, config_values, "no_verify"),
        pushgateway_url=_resolve_option(pushgateway_url, config_values, "pushgateway_url", default=""),
        docker_endpoint=_resolve_option(
            docker_endpoint,
            config_values,
            "docker_endpoint",
            default=DEFAULT_DOCKER_ENDPOINT,
        ),
        aws_access_key_id=_resolve_option(aws_access_key_id, config_values, "aws_access_key_id", default=""),
        aws_secret_access_key=_resolve_option(
            aws_secret_access_key,
            config_values,
            "aws_secret_access_key",
            default="",
        ),
        swift_username=_resolve_option(swift_username, config_values, "swift_username", default=""),
        swift_password=_resolve_option(swift_password, config_values, "swift_password", default=""),
        swift_auth_url=_resolve_option(swift_auth_url, config_values, "swift_auth_url", default=""),
        swift_tenant_name=_resolve_option(swift_tenant_name, config_values, "swift_tenant_name", default=""),
        swift_region_name=_resolve_option(swift_region_name, config_values, "swift_region_name", default=""),
        run_timeout=float(raw_timeout) if raw_timeout is not None else None,
    )

    if not run_config.target_url:
        raise click.ClickException(actionable_error("missing_target_url"))

    targets = _resolve_targets(volumes, config_values)
    if not targets:
        logger.warning("No volumes to back up.")

    conplicity = Conplicity(config=run_config, hostname=socket.gethostname())
    raise SystemExit(conplicity.run(targets))


@main.command()
@click.option("--config", required=False, type=click.Path(), help="Path to a YAML configuration file.")
@click.option("--remote-address", envvar="CONPLICITY_REMOTE_ADDRESS", help="Base URL of the remote instance.")
@click.option("--psk", envvar="CONPLICITY_PSK", help="Preshared key of the remote instance.")
def volumes(config, remote_address, psk):
    """List the volumes known to a remote Conplicity instance."""
    config_values = _load_config(config)
    remote_address = _resolve_option(remote_address, config_values, "remote_address")
    psk = _resolve_option(psk, config_values, "psk", default="")

    if not remote_address:
        raise click.ClickException("Missing required option '--remote-address' (or provide it in config).")

    try:
        client = RemoteInventoryClient.connect(remote_address, psk, requests_module=requests)
        remote_volumes = client.list_volumes()
    except ConnectivityError as exc:
        raise click.ClickException(
            f"{actionable_error('remote_unreachable', address=remote_address)}\n{exc}"
        ) from exc
    except ProtocolMismatchError as exc:
        raise click.ClickException(
            f"{actionable_error('remote_protocol_mismatch', address=remote_address)}\n{exc}"
        ) from exc

    table = Table("Name", "Hostname", "Mountpoint", "Driver")
    for volume in remote_volumes:
        table.add_row(volume.name, volume.hostname, volume.mountpoint, volume.driver)
    Console().print(table)


if __name__ == "__main__":
    main()
