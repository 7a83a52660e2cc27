"""Domain errors raised by the URL service and repository."""


class ShortenerError(Exception):
    """Base class; ``status_code`` is the HTTP status it maps to."""

    status_code = 400


class InvalidURLError(ShortenerError):
    status_code = 400


class InvalidShortCodeError(ShortenerError):
    status_code = 400


class ShortCodeTakenError(ShortenerError):
    status_code = 409


class URLNotFoundError(ShortenerError):
    status_code = 404


class URLExpiredError(ShortenerError):
    status_code = 404
