class WrapperError(Exception):
    """Base class for fatal wrapper errors raised before the backend is running."""


class InstallError(WrapperError):
    """Installing the server or proxy onto disk failed."""


class MissingArtifactError(InstallError):
    """A required artifact is neither installed, bundled nor downloadable."""

    def __init__(self, name: str):
        super().__init__(f"Missing bundled artifact: {name}")
        self.name = name


class ConfigError(WrapperError):
    """The coordinated proxy/backend configuration could not be written."""


class SpawnError(WrapperError):
    """The operating system refused to create a child process."""

    def __init__(self, command, cause: OSError):
        super().__init__(f"Failed to start '{' '.join(command)}': {cause}")
        self.command = list(command)
        self.cause = cause
