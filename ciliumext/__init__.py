"""Cilium networking configuration, chart values, resource mutations and controller helpers."""

__version__ = "0.1.0"