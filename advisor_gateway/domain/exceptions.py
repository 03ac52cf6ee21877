"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class DataError(DomainException):
    """Record store is unavailable or returned a malformed record"""

    pass


class PromptValidationError(DomainException):
    """Snapshot is missing fields required to render a prompt"""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class ModelError(DomainException):
    """Advice model is unreachable, rate limited, timed out, or returned malformed output"""

    pass


class CacheError(DomainException):
    """Advice cache reached an inconsistent state"""

    pass


class OptionError(DomainException):
    """Request option outside the supported set, such as an unknown response format"""

    pass
