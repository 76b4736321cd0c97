"""Optional remote reachability through a mesh VPN or a public tunnel.

The method is chosen once per run, either from configuration or by asking the
operator, and the chosen strategy does all of its own installation and
bring-up. Failures here never stop the pipeline; the caller reports them as
warnings.
"""

import abc
import json
import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

import httpx
from jinja2 import TemplateError

from pisurveillance.config.models import SurveillanceConfig
from pisurveillance.errors import CommandError, InstallError, ProvisioningError
from pisurveillance.provisioning.context import Host
from pisurveillance.provisioning.files import render_template, write_if_changed
from pisurveillance.system.workspace import Workspace

logger = logging.getLogger(__name__)

# Everything a remote-access strategy may raise without stopping the pipeline
SOFT_ERRORS = (
    ProvisioningError,
    httpx.HTTPError,
    OSError,
    subprocess.SubprocessError,
    TemplateError,
    ValueError,
)


@dataclass(frozen=True)
class RemoteAccessResult:
    """Outcome of the remote-access stage.

    address is a VPN address for tailscale or the public hostname for a tunnel.
    """

    method: str
    address: str | None = None
    url: str | None = None

    @property
    def enabled(self) -> bool:
        return self.method != NoRemoteAccess.name


def download(host: Host, url: str, destination: Path) -> Path:
    """Stream a URL to a file."""
    with host.http_client() as client:
        with client.stream("GET", url) as response:
            response.raise_for_status()
            with open(destination, "wb") as f:
                for chunk in response.iter_bytes():
                    f.write(chunk)
    return destination


class RemoteAccessStrategy(abc.ABC):
    """One way of making the web-control port reachable from elsewhere."""

    name: str = ""
    label: str = ""

    @abc.abstractmethod
    def configure(
        self, config: SurveillanceConfig, host: Host, workspace: Workspace
    ) -> RemoteAccessResult:
        """Install and bring up the method, returning how to reach the host."""
        pass


class NoRemoteAccess(RemoteAccessStrategy):
    name = "none"
    label = "Skip remote access"

    def configure(
        self, config: SurveillanceConfig, host: Host, workspace: Workspace
    ) -> RemoteAccessResult:
        logger.info("Skipping remote access configuration")
        return RemoteAccessResult(method=self.name)


class TailscaleAccess(RemoteAccessStrategy):
    """Peer-to-peer mesh VPN; the host gets a stable private address."""

    name = "tailscale"
    label = "Tailscale (Recommended - P2P VPN)"
    INSTALL_SCRIPT_URL = "https://tailscale.com/install.sh"

    def configure(
        self, config: SurveillanceConfig, host: Host, workspace: Workspace
    ) -> RemoteAccessResult:
        if host.runner.which("tailscale") is None:
            self.install(host, workspace)
        else:
            logger.info("Tailscale already installed")

        address = self.bring_up(host)
        logger.info("Tailscale IP: %s", address)
        return RemoteAccessResult(method=self.name, address=address)

    def install(self, host: Host, workspace: Workspace) -> None:
        """Fetch the vendor install script into the workspace and run it."""
        logger.info("Installing Tailscale")
        script = download(host, self.INSTALL_SCRIPT_URL, workspace.file("tailscale-install.sh"))
        try:
            host.runner.run(["sh", str(script)])
        except CommandError as e:
            raise InstallError(f"Tailscale installation failed: {e}") from e

    def bring_up(self, host: Host) -> str:
        """Join the tailnet and return the host's address on it.

        If the first attempt fails, retry once with a reset session and report
        the IPv6 address instead.
        """
        logger.info("Authenticate this device in the browser link printed below")
        try:
            host.runner.run(["tailscale", "up"], interactive=True)
            return self.get_address(host, "-4")
        except CommandError as e:
            logger.warning("Tailscale bring-up failed (%s); retrying with a reset session", e)

        host.runner.run(["tailscale", "up", "--reset"], interactive=True)
        return self.get_address(host, "-6")

    @staticmethod
    def get_address(host: Host, family: str) -> str:
        cmd = ["tailscale", "ip", family]
        result = host.runner.run(cmd)
        addresses = result.stdout.split()
        if not addresses:
            raise CommandError(cmd, result.returncode, "no address assigned")
        return addresses[0]


class CloudflaredTunnelAccess(RemoteAccessStrategy):
    """Outbound tunnel exposing the web-control port on a public hostname."""

    name = "cloudflared"
    label = "Cloudflare Tunnel (public HTTPS hostname)"
    RELEASE_API_URL = "https://api.github.com/repos/cloudflare/cloudflared/releases/latest"
    ARCHITECTURES = {
        "aarch64": "arm64",
        "arm64": "arm64",
        "armv7l": "arm",
        "armv6l": "arm",
        "x86_64": "amd64",
        "i686": "386",
    }

    def configure(
        self, config: SurveillanceConfig, host: Host, workspace: Workspace
    ) -> RemoteAccessResult:
        if not host.operator.is_attended():
            raise InstallError(
                "Cloudflare Tunnel needs an operator to enter the tunnel token.",
                hint="Re-run the setup from an interactive terminal to add the tunnel.",
            )

        if host.runner.which("cloudflared") is None:
            self.install(host, workspace)
        else:
            logger.info("cloudflared already installed")

        token = self.ask_token(host)
        tunnel_name = config.remote_access.tunnel_name
        hostname = config.remote_access.tunnel_hostname or self.ask_hostname(host)

        self.login(host)
        tunnel_id = self.ensure_tunnel(tunnel_name, host)
        host.runner.run(
            ["cloudflared", "tunnel", "route", "dns", "--overwrite-dns", tunnel_name, hostname]
        )
        self.write_ingress(config, host, tunnel_id, hostname)
        self.register_service(token, host)

        logger.info("Tunnel %s routes https://%s to port %d", tunnel_name, hostname, config.daemon.web_port)
        return RemoteAccessResult(method=self.name, address=hostname, url=f"https://{hostname}")

    def get_asset_name(self, machine: str) -> str:
        arch = self.ARCHITECTURES.get(machine)
        if arch is None:
            raise InstallError(f"No cloudflared build for architecture '{machine}'.")
        return f"cloudflared-linux-{arch}"

    def install(self, host: Host, workspace: Workspace) -> None:
        """Download the latest release binary for this architecture."""
        asset_name = self.get_asset_name(host.inspector.get_machine())
        with host.http_client() as client:
            response = client.get(self.RELEASE_API_URL)
            response.raise_for_status()
            release = response.json()

        asset_url = next(
            (
                asset["browser_download_url"]
                for asset in release.get("assets", [])
                if asset.get("name") == asset_name
            ),
            None,
        )
        if asset_url is None:
            raise InstallError(f"Release {release.get('tag_name', '?')} has no {asset_name} asset.")

        logger.info("Downloading %s %s", asset_name, release.get("tag_name", ""))
        binary = download(host, asset_url, workspace.file(asset_name))
        binary.chmod(0o755)
        target = host.paths.get_cloudflared_binary_path()
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(binary), target)
        logger.info("Installed cloudflared to %s", target)

    @staticmethod
    def ask_token(host: Host) -> str:
        """Ask until the operator supplies a non-empty token."""
        while True:
            token = host.operator.ask_secret("Cloudflare tunnel token")
            if token:
                return token
            logger.warning("A tunnel token is required to continue")

    @staticmethod
    def ask_hostname(host: Host) -> str:
        while True:
            hostname = host.operator.ask("Public hostname for the tunnel (e.g. cam.example.com)")
            if hostname:
                return hostname
            logger.warning("A hostname is required to route the tunnel")

    @staticmethod
    def login(host: Host) -> None:
        cert = host.paths.get_cloudflared_credentials_dir() / "cert.pem"
        if cert.exists():
            logger.info("Using existing tunnel certificate %s", cert)
            return
        logger.info("Authorize the tunnel in the browser link printed below")
        host.runner.run(["cloudflared", "tunnel", "login"], interactive=True)

    @staticmethod
    def find_tunnel(tunnel_name: str, host: Host) -> str | None:
        result = host.runner.run(
            ["cloudflared", "tunnel", "list", "--output", "json", "--name", tunnel_name]
        )
        for tunnel in json.loads(result.stdout or "[]"):
            if tunnel.get("name") == tunnel_name:
                return tunnel["id"]
        return None

    def ensure_tunnel(self, tunnel_name: str, host: Host) -> str:
        """Return the id of the named tunnel, creating it if needed."""
        tunnel_id = self.find_tunnel(tunnel_name, host)
        if tunnel_id:
            logger.info("Reusing tunnel %s (%s)", tunnel_name, tunnel_id)
            return tunnel_id

        result = host.runner.run(["cloudflared", "tunnel", "create", tunnel_name])
        match = re.search(r"with id ([0-9a-f-]{36})", result.stdout + result.stderr)
        if match:
            return match.group(1)
        tunnel_id = self.find_tunnel(tunnel_name, host)
        if tunnel_id is None:
            raise InstallError(f"Tunnel {tunnel_name} was not created.")
        return tunnel_id

    @staticmethod
    def write_ingress(config: SurveillanceConfig, host: Host, tunnel_id: str, hostname: str) -> None:
        credentials = host.paths.get_cloudflared_credentials_dir() / f"{tunnel_id}.json"
        content = render_template(
            host.paths,
            "cloudflared.yml.j2",
            tunnel_name=config.remote_access.tunnel_name,
            credentials_file=str(credentials),
            hostname=hostname,
            web_port=config.daemon.web_port,
        )
        write_if_changed(host.paths.get_cloudflared_config_path(), content)

    @staticmethod
    def register_service(token: str, host: Host) -> None:
        if host.services.is_service_present("cloudflared"):
            logger.info("cloudflared service already registered, restarting it")
            host.services.restart_service("cloudflared")
            return
        host.runner.run(["cloudflared", "service", "install", token])
        logger.info("Registered cloudflared as a supervised service")


STRATEGIES: dict[str, type[RemoteAccessStrategy]] = {
    "1": TailscaleAccess,
    "2": CloudflaredTunnelAccess,
    "3": NoRemoteAccess,
}


def select_strategy(config: SurveillanceConfig, host: Host) -> RemoteAccessStrategy:
    """Pick the remote-access strategy from configuration or the operator."""
    method = config.remote_access.method
    if method is not None:
        for strategy_class in STRATEGIES.values():
            if strategy_class.name == method:
                return strategy_class()

    if not host.operator.is_attended():
        logger.info("No operator attached and no remote access method configured")
        return NoRemoteAccess()

    options = {key: strategy_class.label for key, strategy_class in STRATEGIES.items()}
    choice = host.operator.choose("Choose remote access method", options)
    strategy_class = STRATEGIES.get(choice)
    if strategy_class is None:
        logger.warning("Invalid choice '%s', skipping remote access", choice)
        return NoRemoteAccess()
    return strategy_class()


def configure_remote_access(
    config: SurveillanceConfig, host: Host, workspace: Workspace
) -> RemoteAccessResult:
    """Select and bring up remote access; errors in SOFT_ERRORS propagate to the caller."""
    strategy = select_strategy(config, host)
    return strategy.configure(config, host, workspace)
