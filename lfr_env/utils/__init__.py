"""Utility helpers shared across scripts and tests."""

from .config import load_config_dict, load_sim_config

__all__ = [
    "load_config_dict",
    "load_sim_config",
]
