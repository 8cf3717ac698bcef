__all__ = (
    "AddressError",
    "NoAddressError",
    "UnknownListenTargetTypeError",
)


class AddressError(RuntimeError):
    """Base class for addressing-related errors."""

    pass


class NoAddressError(AddressError):
    """Error thrown when the address of a listener is requested but the
    listener is not bound to any address (yet or any more).
    """

    def __init__(self, message: str = ""):
        super().__init__(message or "server has no address")


class UnknownListenTargetTypeError(RuntimeError):
    """Exception thrown when trying to construct a listen target with an
    unknown type.
    """

    def __init__(self, target_type: str):
        """Constructor.

        Parameters:
            target_type: the listen target type that the user tried
                to construct.
        """
        super().__init__(f"Unknown listen target type: {target_type!r}")
