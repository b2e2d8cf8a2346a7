"""Exceptions and warning categories raised by rangeMD."""


class UnrecognizedSubtypeError(SystemExit):
    """
    Raised when an angular or dihedral class carries an unknown subtype.

    A malformed interaction model cannot be recovered from, so this derives
    from :class:`SystemExit`: left uncaught it terminates the process with
    exit status 1 after printing the message, and it is not swallowed by
    ``except Exception`` handlers.
    """

    def __init__(self, full_name: str):
        self.full_name = full_name
        super().__init__(f"Unrecognized {full_name} class subtype!")


class RangeFindingWarning(UserWarning):
    """Base category for soft failures during range finding and inversion."""


class BinIndexWarning(RangeFindingWarning):
    """A recorded sample fell beyond the last allocated histogram bin."""


class InsufficientSamplingWarning(RangeFindingWarning):
    """A histogram bin used for Boltzmann inversion holds no samples."""
