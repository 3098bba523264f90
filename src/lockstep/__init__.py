"""lockstep: Dependency resolution core for a package manager."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"
