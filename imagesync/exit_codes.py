"""
Standard exit codes for imagesync commands.

Following Unix/POSIX conventions for command-line tools.
"""

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
NO_IMAGES_FOUND = 64     # Source resolved to zero images
CONFIG_ERROR = 66        # Configuration or manifest file error
NETWORK_ERROR = 68       # Network connection failed or run timed out
DESTINATION_ERROR = 72   # Destination cannot be written
COPY_ERROR = 73          # Copy engine reported a failure
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.

    Every fatal sync error derives from this class, so the command layer
    only needs a single handler to turn it into a process exit status.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class UsageError(CommandError):
    """Raised for invalid or conflicting source/destination options."""
    def __init__(self, message: str):
        super().__init__(message, USAGE_ERROR)


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)


class ManifestError(ConfigError):
    """Raised when a source manifest document cannot be decoded."""


class NoImagesFoundError(CommandError):
    """Raised when a single-repository or directory source has no images."""
    def __init__(self, message: str = "No images to sync found"):
        super().__init__(message, NO_IMAGES_FOUND)


class SourceError(CommandError):
    """Raised when the sync source cannot be read."""
    def __init__(self, message: str):
        super().__init__(message, GENERAL_ERROR)


class DestinationError(CommandError):
    """Raised when a destination address cannot be prepared."""
    def __init__(self, message: str):
        super().__init__(message, DESTINATION_ERROR)


class CopyError(CommandError):
    """Raised when the copy engine fails to transfer an image."""
    def __init__(self, message: str):
        super().__init__(message, COPY_ERROR)


class SyncTimeoutError(CommandError):
    """Raised when the overall command timeout expires."""
    def __init__(self, message: str = "Command timed out"):
        super().__init__(message, NETWORK_ERROR)
