"""Advisory validators for root manifests."""

from lockstep.validator.base import Advisory, AdvisoryLevel, Validator
from lockstep.validator.dependency import DependencyValidator

__all__ = [
    "Advisory",
    "AdvisoryLevel",
    "DependencyValidator",
    "Validator",
]
