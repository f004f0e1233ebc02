"""homelab-setup - resumable provisioning for a single-host homelab."""

__version__ = "0.3.0"
