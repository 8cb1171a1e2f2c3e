"""Exception types raised by sysanalyzer."""


class SysAnalyzerError(Exception):
    """Base class for sysanalyzer errors."""


class CollectionError(SysAnalyzerError):
    """A snapshot could not be collected as a whole.

    Raised when process enumeration itself fails. The tick that raised it
    is skipped; the monitoring loop carries on with the next one.
    """


class ConfigurationError(SysAnalyzerError):
    """A configuration file could not be read or parsed."""
