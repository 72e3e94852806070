"""
Config Module - Black Box Interface

Purpose: Fetch a run's execution config from the control plane
Interface: fetch_config()
Hidden: Endpoint layout, authentication, decoding

Any failure is a ConfigError and aborts the run before a subprocess starts.
"""

from .fetch import config_url, fetch_config

__all__ = ["config_url", "fetch_config"]
