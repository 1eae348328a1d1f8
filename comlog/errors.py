"""Error taxonomy for the recorder."""


class ComlogError(Exception):
    """Base class for all recorder errors."""


class ConfigurationError(ComlogError):
    """A configuration value is out of range."""


class SourceAcquisitionError(ComlogError):
    """The stream source could not be opened (device missing, busy or denied)."""


class FileCreationError(ComlogError):
    """A new output file could not be created in the destination."""


class SinkUnavailableError(ComlogError):
    """A record was offered while no output file is open."""


class RecordWriteError(ComlogError):
    """Appending a record to the current output file failed."""


class SessionActiveError(ComlogError):
    """A session was started while another one is still active."""
