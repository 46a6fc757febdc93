"""Declarative lifecycle management for AWS NAT gateways."""

__version__ = "0.1.0"
