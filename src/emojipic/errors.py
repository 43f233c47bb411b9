class EmojipicError(Exception):
    """Base class for engine failures reported at the request boundary."""


class InitializationError(EmojipicError):
    """The symbol palette could not be built, or came out empty."""


class InvalidDimensionError(EmojipicError):
    """Image or grid dimensions are degenerate."""


class NotReadyError(EmojipicError):
    """A request arrived before the palette was available."""


class EngineBusyError(NotReadyError):
    """A request arrived while another one was still in flight."""
