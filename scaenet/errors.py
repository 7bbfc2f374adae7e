class ScaenetError(Exception):
    pass


class StructureError(ScaenetError, ValueError):
    """Adjacent layers (or a bound buffer) disagree on their dimensions."""


class UnreadableNetworkError(ScaenetError, OSError):
    """The persisted network is missing, truncated or otherwise corrupt."""


class IncompatibleFormatError(ScaenetError, ValueError):
    """The persisted network was written with another format tag or version."""


class CloneError(ScaenetError, RuntimeError):
    pass
