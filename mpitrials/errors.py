""" Exceptions raised by the MPI design. """


class MPIError(Exception):
    """Base class for all errors raised by mpitrials."""


class ConfigurationError(MPIError, ValueError):
    """Invalid design or simulation parameters.

    Raised for negative probabilities, thresholds outside [0, 1], inverted
    thresholds, tolerances too small to partition stably, too few
    Monte-Carlo samples and malformed scenarios.
    """


class InvalidDoseError(MPIError, LookupError):
    """A dose value is not present in the dose-response table."""


class DomainError(MPIError, ValueError):
    """A probability outside [0, 1] was passed to a likelihood."""


class DivisionByZeroError(MPIError, ZeroDivisionError):
    """Rates were requested from a zero total count."""


class TableNotFoundError(MPIError, LookupError):
    """No decision table is registered for the requested sample size."""


class UndefinedDecisionError(MPIError, RuntimeError):
    """A decision table was read at a cell that holds no decision.

    This signals a defect in the tables given to a trial, never a condition
    to recover from.
    """
