"""LeadFlow Exception Hierarchy.

All custom exceptions inherit from LeadFlowError.

A lead reaching a terminal stage is NOT an exception. The cadence
engine reports it through CadenceResult.stopped, because it is an
expected, everyday outcome.

Exception Hierarchy:
    LeadFlowError (base)
    ├── ConfigurationError
    ├── ValidationError
    ├── TemplateError
    └── PersistenceError
"""


class LeadFlowError(Exception):
    """Base exception for all LeadFlow errors.

    Allows broad exception handling at the command layer.
    """

    pass


class ConfigurationError(LeadFlowError):
    """Configuration is invalid or missing.

    Raised when:
        - Configured policy file does not exist
        - Configured template directory is not a directory
    """

    pass


class ValidationError(LeadFlowError):
    """Data validation failed.

    Raised where cadence policies are authored or loaded, never
    inside task generation:
        - Rule title is blank
        - Rule day offset is negative or not an integer
        - Rule channel is unknown
        - Policy name is blank
    """

    pass


class TemplateError(LeadFlowError):
    """Message template lookup or rendering failed.

    Raised when:
        - Template ID is unknown
        - Template has a syntax error
    """

    pass


class PersistenceError(LeadFlowError):
    """Task store failed while saving proposed follow-up tasks.

    Tasks saved before the failure stay saved. Re-running the planner
    picks up where it left off because already-saved tasks count as
    duplicates.
    """

    pass
