"""
Domain errors raised by the service layer.

Routers translate these into HTTP responses; services never raise
HTTPException themselves.
"""


class LinkError(Exception):
    """Base class for link management errors"""


class LinkNotFoundError(LinkError):
    """No link with the given id"""


class InvalidSlugError(LinkError):
    """Slug is malformed or reserved"""


class InvalidTargetError(LinkError):
    """Target URL is not an absolute http(s) URL"""


class SlugUnavailableError(LinkError):
    """Another live link already uses the slug"""


class GuestLimitExceededError(LinkError):
    """Guest session created too many links inside the limit window"""


class SlugGenerationError(LinkError):
    """No free slug could be generated"""
