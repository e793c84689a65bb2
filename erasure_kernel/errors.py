"""Exceptions raised inside the erasure kernel.

None of these escape the risk assessor, the orchestrator or the
notification dispatcher; they are converted into structured results there.
"""


class ErasureKernelError(Exception):
    """Base class for erasure kernel errors."""
    pass


class RegistryError(ErasureKernelError):
    """Raised when a data store registry is missing, duplicating or misnaming targets."""
    pass

