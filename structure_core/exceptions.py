"""Error and warning types raised by structure_core.

Fatal conditions are raised as exceptions; recoverable conditions are
reported with ``warnings.warn`` and reflected on the returned objects.
"""


class StructureError(ValueError):
    """Base class for fatal structure-processing errors."""


class EmptyStructureError(StructureError):
    """No valid atoms could be extracted from the input."""


class StructureTooLargeError(StructureError):
    """Input exceeds the configured size guard."""


class MissingReferenceAtomsError(StructureError):
    """Neither CA atoms nor backbone fallback atoms were found."""


class StructureWarning(UserWarning):
    """Base class for recoverable structure-processing conditions."""


class MalformedLineWarning(StructureWarning):
    """A coordinate record was skipped."""


class MissingReferenceAtomsWarning(StructureWarning):
    """No CA atoms were found; backbone atoms were used instead."""


class LengthMismatchWarning(StructureWarning):
    """Reference atom lists differ in length and were truncated."""
