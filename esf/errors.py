"""
Errors module: exception taxonomy for parsing, joining, fitting and selection.
"""


class ESFError(Exception):
    """
    Base error. Carries the selection loop state at the point of failure
    (empty when raised outside the selector).
    """

    def __init__(self, message, accepted=(), statistic=None):
        super().__init__(message)
        self.accepted = tuple(accepted)
        self.statistic = statistic

    def with_state(self, accepted, statistic):
        """Attach partial selection state and return self (for re-raising)."""
        self.accepted = tuple(accepted)
        self.statistic = statistic
        return self


class ParseError(ESFError):
    """Non-numeric values in columns expected to be numeric."""

    def __init__(self, message, failures=None):
        super().__init__(message)
        self.failures = list(failures or [])


class JoinMismatchError(ESFError):
    """Identifiers present on one side of a join but not the other."""

    def __init__(self, message, missing=None):
        super().__init__(message)
        # {table_name: {'missing_in_table': [...], 'missing_in_layer': [...]}}
        self.missing = dict(missing or {})


class FitError(ESFError):
    """Regression could not be fitted."""


class SingularFitError(FitError):
    """Design matrix is rank-deficient after zero-column removal."""


class DegenerateColumnError(ESFError):
    """Candidate column is identically zero across all units."""


class ExhaustedCandidatesError(ESFError):
    """All candidate eigenvectors tried without reaching the tolerance."""
