"""Post-install summary of deployed services."""
from dataclasses import dataclass
from pathlib import Path
from typing import List

from homelab.core.config import HomelabConfig


@dataclass(frozen=True)
class ServiceEndpoint:
    name: str
    url: str


PODMAN_ENDPOINTS: List[ServiceEndpoint] = [
    ServiceEndpoint("Homarr Dashboard", "http://localhost:7575"),
    ServiceEndpoint("Dozzle (Logs)", "http://localhost:8888"),
    ServiceEndpoint("Cockpit", "https://localhost:9090"),
    ServiceEndpoint("Nginx Proxy Manager", "http://localhost:81"),
    ServiceEndpoint("Pi-hole", "http://localhost:8080/admin"),
    ServiceEndpoint("UniFi Controller", "https://localhost:8443"),
    ServiceEndpoint("Uptime Kuma", "http://localhost:3001"),
    ServiceEndpoint("Home Assistant", "http://localhost:8123"),
    ServiceEndpoint("Stirling PDF", "http://localhost:8082"),
]

# (name, scheme, host octet on the macvlan subnet, port, path)
DOCKER_SERVICES = [
    ("Portainer", "http", 200, 9000, ""),
    ("UniFi Controller", "https", 201, 8443, ""),
    ("Nginx Proxy Manager", "http", 202, 81, ""),
    ("Pi-hole", "http", 203, None, "/admin"),
    ("Uptime Kuma", "http", 204, 3001, ""),
    ("Home Assistant", "http", 205, 8123, ""),
    ("Stirling PDF", "http", 206, 8080, ""),
    ("Homarr Dashboard", "http", 207, 7575, ""),
    ("Dozzle (Logs)", "http", 208, 8080, ""),
]

UNKNOWN_SUBNET_PREFIX = "<subnet>"


def macvlan_prefix(base_dir: Path) -> str:
    """First three octets of the subnet recorded by the Portainer installer."""
    try:
        subnet = (Path(base_dir) / ".network_subnet").read_text().strip()
    except OSError:
        return UNKNOWN_SUBNET_PREFIX
    octets = subnet.split("/")[0].split(".")
    if len(octets) != 4:
        return UNKNOWN_SUBNET_PREFIX
    return ".".join(octets[:3])


def service_endpoints(config: HomelabConfig) -> List[ServiceEndpoint]:
    """URLs of the deployed services for the configured runtime."""
    if config.runtime != "docker":
        return list(PODMAN_ENDPOINTS)

    prefix = macvlan_prefix(config.base_dir)
    endpoints = []
    for name, scheme, host, port, path in DOCKER_SERVICES:
        address = f"{prefix}.{host}" + (f":{port}" if port else "")
        endpoints.append(ServiceEndpoint(name, f"{scheme}://{address}{path}"))
    return endpoints
