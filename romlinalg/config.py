"""
Configuration for the dense kernel.

This module provides:
- KernelConfig dataclass (QRCP back end, tie tolerance, communication
  chunking, bounds checks, logging)
- YAML loading and saving
- A process-wide default consulted by the kernels

Author: Anthony Poole
"""

import os
import yaml
from dataclasses import dataclass, asdict


QRCP_BACKENDS = ("householder", "lapack")


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================

@dataclass
class KernelConfig:
    """Configuration container for the distributed dense kernel."""

    # QRCP
    qrcp_backend: str = "householder"
    tie_rtol: float = 1e-12

    # Communication
    max_chunk_bytes: int = 2**30

    # Checks
    check_bounds: bool = True

    # Execution
    log_level: str = "INFO"
    output_dir: str = ""

    def validate(self):
        """Reject settings the kernels can not honour."""
        if self.qrcp_backend not in QRCP_BACKENDS:
            raise ValueError(
                f"Unknown QRCP backend '{self.qrcp_backend}', expected one of {QRCP_BACKENDS}"
            )
        if not 0.0 <= self.tie_rtol < 1.0:
            raise ValueError(f"tie_rtol must be in [0, 1), got {self.tie_rtol}")
        if self.max_chunk_bytes <= 0:
            raise ValueError(f"max_chunk_bytes must be positive, got {self.max_chunk_bytes}")
        return self


def load_config(config_path: str) -> KernelConfig:
    """Load configuration from YAML file."""
    with open(config_path, 'r') as f:
        raw = yaml.safe_load(f) or {}

    cfg = KernelConfig()

    qrcp = raw.get("qrcp", {})
    cfg.qrcp_backend = qrcp.get("backend", "householder")
    cfg.tie_rtol = float(qrcp.get("tie_rtol", 1e-12))

    comm = raw.get("communication", {})
    cfg.max_chunk_bytes = int(comm.get("max_chunk_bytes", 2**30))

    checks = raw.get("checks", {})
    cfg.check_bounds = bool(checks.get("bounds", True))

    execution = raw.get("execution", {})
    cfg.log_level = execution.get("log_level", "INFO")
    cfg.output_dir = execution.get("output_dir", "")

    return cfg.validate()


def save_config(cfg: KernelConfig, output_path: str, step_name: str = None) -> str:
    """Save configuration to YAML file."""
    config_dict = {
        "qrcp": {"backend": cfg.qrcp_backend, "tie_rtol": cfg.tie_rtol},
        "communication": {"max_chunk_bytes": cfg.max_chunk_bytes},
        "checks": {"bounds": cfg.check_bounds},
        "execution": {"log_level": cfg.log_level, "output_dir": cfg.output_dir},
    }

    filename = f"config_{step_name}.yaml" if step_name else "config.yaml"
    filepath = os.path.join(output_path, filename)

    with open(filepath, 'w') as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

    return filepath


# =============================================================================
# PROCESS-WIDE DEFAULT
# =============================================================================

_active_config = KernelConfig()


def get_config() -> KernelConfig:
    """Return the configuration the kernels currently use."""
    return _active_config


def set_config(cfg: KernelConfig) -> KernelConfig:
    """Install `cfg` as the process-wide configuration; returns the previous one."""
    global _active_config
    previous = _active_config
    _active_config = cfg.validate()
    return previous


def config_as_dict(cfg: KernelConfig) -> dict:
    """Flat dictionary view, used for logging."""
    return asdict(cfg)
