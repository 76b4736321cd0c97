"""Surveillance provisioning CLI.

Turns a freshly imaged Raspberry Pi with a USB webcam into a motion-detecting
surveillance appliance. It handles:
- Preflight privilege and resource checks
- Camera detection and a live capture test
- Package installation and daemon configuration
- Capture storage, optionally in RAM
- Optional remote access (Tailscale or Cloudflare Tunnel)
- Firewall and SSH hardening

Settings come from /etc/pi-surveillance/config.yaml when present (override with
PISURVEILLANCE_CONFIG); a 'preset: motioneye' key selects the motionEye variant.
"""

import sys

import click

from pisurveillance.config.manager import ConfigManager
from pisurveillance.errors import ConfigError
from pisurveillance.provisioning.context import Host
from pisurveillance.provisioning.pipeline import ProvisioningPipeline
from pisurveillance.system.path_resolver import PathResolver
from pisurveillance.system.structlog_configurator import configure_structlog


@click.command()
def main() -> None:
    """Provision this board as a USB-webcam surveillance appliance."""
    path_resolver = PathResolver()
    try:
        config = ConfigManager(path_resolver).load()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        if e.hint:
            click.echo(f"Hint: {e.hint}", err=True)
        sys.exit(1)

    configure_structlog(config)
    host = Host.create(path_resolver=path_resolver)
    report = ProvisioningPipeline(config, host).run()
    sys.exit(report.exit_code)


if __name__ == "__main__":
    main()
