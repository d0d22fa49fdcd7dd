"""
Exceptions for the H -> gamma gamma + DM selection package.

Only hard errors live here: a bad configuration, unreadable inputs, or
using the selector before an event is bound. Unknown cut or scheme names
and unclassifiable events are soft failures: they are logged and a
default value is returned instead.
"""


class AnalysisError(Exception):
    """
    Base exception for all dmselect errors.
    """
    pass


class ConfigurationError(AnalysisError):
    """
    Raised when the selector or job configuration is invalid.

    Examples:
    - a cut name with no predicate
    - a categorization scheme declaring fewer than one category
    - registered cuts/schemes not matching the expected manifest
    """
    pass


class DataLoadError(AnalysisError):
    """
    Raised when ntuples or mass-point files cannot be loaded.
    """
    pass


class BranchMissingError(AnalysisError):
    """
    Raised when a required branch is not found and cannot be derived.
    """

    def __init__(self, branch_name, file_path=None):
        self.branch_name = branch_name
        self.file_path = file_path
        message = f"Branch '{branch_name}' not found"
        if file_path:
            message += f" in {file_path}"
        super().__init__(message)


class EventNotLoadedError(AnalysisError):
    """
    Raised when a cut or category is evaluated before any event is bound.
    """
    pass
