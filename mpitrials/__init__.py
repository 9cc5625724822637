"""The modified probability interval (MPI) design for phase I dose finding
with futility, efficacy and toxicity outcomes."""

__all__ = [
    "core",
    "dosefinding",
    "errors",
    "utils",
]

import logging

# Attach a NullHandler to avoid logging warnings on import
logging.getLogger(__name__).addHandler(logging.NullHandler())
