class DrillError(Exception):
    pass


class ConfigurationError(DrillError):
    """Raised for an unknown exercise selector or an unreadable config file."""


class PoseSourceError(DrillError):
    """A single detection cycle failed; the loop may try again."""


class PoseSourceClosed(DrillError):
    """The frame producer is exhausted or has been torn down."""
