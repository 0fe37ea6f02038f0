class CreatorMatchError(Exception):
    """Base class for errors raised by the matching services."""


class ClientInputError(CreatorMatchError):
    """Request fields are missing or malformed; nothing was written."""


class UpstreamQueryError(CreatorMatchError):
    """Every creator query for a search failed."""


class PersistenceError(CreatorMatchError):
    """A validated match write could not be stored."""


class ClassifierError(CreatorMatchError):
    """The category classifier returned nothing usable."""
