"""Exception types raised by the analysis worker."""


class CatalogWorkerError(Exception):
    """Base class for worker errors."""


class InputError(CatalogWorkerError):
    """The image reference is missing or not fetchable."""


class SessionStateError(CatalogWorkerError):
    """An analysis session or batch was asked to make an illegal transition."""


class PersistenceError(CatalogWorkerError):
    """An upload or record insert failed."""
