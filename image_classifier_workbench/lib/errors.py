"""
Error taxonomy shared by the dataset and evaluation components.
"""


class WorkbenchError(Exception):
    """Base class for all errors raised by the workbench."""


class CatalogError(WorkbenchError, ValueError):
    """The class catalog cannot support the requested run."""


class InsufficientClassesError(CatalogError):
    """The catalog holds fewer class labels than the strategy requires."""

    def __init__(self, found: int, required: int, strategy: str):
        self.found = found
        self.required = required
        self.strategy = strategy
        super().__init__(
            f"{strategy} classification requires at least {required} class "
            f"label directories, found {found}"
        )


class InsufficientSamplesError(WorkbenchError, ValueError):
    """A class or synthesized group has no samples to train on."""


class SchemaValidationError(WorkbenchError, ValueError):
    """A prediction table or label-set sequence is malformed."""


class DirectoryAccessError(WorkbenchError, OSError):
    """A class directory could not be read."""
