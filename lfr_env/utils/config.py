"""Config loading helpers built around OmegaConf."""

from __future__ import annotations

from typing import Any, Dict

from omegaconf import OmegaConf

from lfr_env.config import SimConfig


def load_config_dict(path: str | None, overrides: list[str] | None = None) -> Dict[str, Any]:
    """Load an optional YAML file, apply dotlist overrides, and guarantee a `dict` result."""
    base = OmegaConf.load(path) if path else OmegaConf.create({})
    if overrides:
        base = OmegaConf.merge(base, OmegaConf.from_dotlist(list(overrides)))
    cfg = OmegaConf.to_container(base, resolve=True)
    if not isinstance(cfg, dict):
        raise TypeError(f"Expected mapping at {path}, got {type(cfg)}")
    return cfg


def load_sim_config(path: str | None, overrides: list[str] | None = None) -> SimConfig:
    """Build a SimConfig from an optional YAML file plus dotlist overrides.

    Overrides use OmegaConf dotlist syntax, e.g. ``sim.dt=0.01``.
    """
    return SimConfig.from_dict(load_config_dict(path, overrides))
