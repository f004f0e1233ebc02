"""Tests for the post-install service summary."""
from homelab.core.config import HomelabConfig
from homelab.core.summary import macvlan_prefix, service_endpoints


def _urls(config):
    return {endpoint.name: endpoint.url for endpoint in service_endpoints(config)}


class TestPodmanSummary:
    def test_cockpit_on_localhost(self, tmp_path):
        urls = _urls(HomelabConfig(base_dir=tmp_path))

        assert urls["Cockpit"] == "https://localhost:9090"
        assert "Portainer" not in urls

    def test_podman_commands(self, tmp_path):
        commands = HomelabConfig(base_dir=tmp_path).profile.management_commands
        assert "podman-compose logs -f" in commands


class TestDockerSummary:
    def test_portainer_on_recorded_subnet(self, tmp_path):
        (tmp_path / ".network_subnet").write_text("192.168.100.0/24\n")

        urls = _urls(HomelabConfig(runtime="docker", base_dir=tmp_path))

        assert urls["Portainer"] == "http://192.168.100.200:9000"
        assert urls["Pi-hole"] == "http://192.168.100.203/admin"
        assert "Cockpit" not in urls

    def test_unknown_subnet_placeholder(self, tmp_path):
        urls = _urls(HomelabConfig(runtime="docker", base_dir=tmp_path))
        assert urls["Portainer"] == "http://<subnet>.200:9000"

    def test_malformed_subnet(self, tmp_path):
        (tmp_path / ".network_subnet").write_text("garbage\n")
        assert macvlan_prefix(tmp_path) == "<subnet>"

    def test_docker_commands(self, tmp_path):
        commands = HomelabConfig(runtime="docker", base_dir=tmp_path).profile.management_commands

        assert "docker compose up -d" in commands
        assert not any("podman" in command for command in commands)
