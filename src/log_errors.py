"""
Rolling Logger Errors
Exception hierarchy shared by the configuration, file and writer layers.
"""


class LoggerError(Exception):
    """Base class for all rolling logger failures."""


class ConfigError(LoggerError, ValueError):
    """Invalid level, rolling option or prefix; raised at construction only."""


class DirectoryError(LoggerError):
    """Log directory cannot be created or is not writable."""


class FileOpenError(LoggerError):
    """A new log file could not be opened."""


class WriteError(LoggerError):
    """A single append to the active log file failed."""
