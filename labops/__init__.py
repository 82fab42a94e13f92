"""Homelab administration toolkit: backups, rotation, SSH and Hyper-V helpers."""

__version__ = "0.1.0"
