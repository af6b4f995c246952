"""
Utility functions shared by the kernel and its drivers.

This module provides:
- Logging setup (rank-aware)
- Silent logger for non-root MPI ranks
- Console output helpers

Author: Anthony Poole
"""

import os
import logging


# =============================================================================
# LOGGING
# =============================================================================

def setup_logging(name: str, run_dir: str = "", log_level: str = "INFO", rank: int = 0) -> logging.Logger:
    """
    Configure the `name` logger for a run on `rank`.

    The kernel modules log under the "romlinalg" namespace, so configuring
    that name also routes their [DIAG] messages. Earlier handlers are closed
    and replaced. Rank 0 additionally writes everything down to DEBUG to
    <run_dir>/<name>.log when `run_dir` is given.
    """
    level = getattr(logging, log_level.upper())
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if rank == 0 and run_dir else level)
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []

    formatter = logging.Formatter(
        f'%(asctime)s [%(name)s:{rank}] %(levelname)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if rank == 0 and run_dir:
        os.makedirs(run_dir, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(run_dir, f"{name}.log"), mode='a')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


class DummyLogger:
    """Silent logger for non-root MPI ranks."""
    def info(self, *a, **kw): pass
    def error(self, *a, **kw): pass
    def warning(self, *a, **kw): pass
    def debug(self, *a, **kw): pass


# =============================================================================
# CONSOLE OUTPUT HELPERS
# =============================================================================

def print_header(title: str, width: int = 70):
    """Print a formatted header."""
    print("\n" + "=" * width)
    print(f" {title}")
    print("=" * width)
