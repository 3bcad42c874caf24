"""
vbgrowth

vbgrowth is a python package for hierarchical Bayesian estimation of von
Bertalanffy growth from length-at-capture census samples and
capture-mark-recapture increments, with PSIS-LOO predictive validation.
"""

from importlib import metadata

import vbgrowth.logging
import vbgrowth.models


try:
    __version__ = metadata.version(__package__)
except metadata.PackageNotFoundError:
    __version__ = "unknown"

del metadata

__all__ = [
    "logging",
    "models",
]
