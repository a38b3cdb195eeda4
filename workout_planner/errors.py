"""Error taxonomy shared by the repository, the codec and the HTTP/CLI surfaces."""

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    PARSE = "PARSE"
    FORMAT_UNSUPPORTED = "FORMAT_UNSUPPORTED"
    INTEGRITY = "INTEGRITY"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL = "INTERNAL"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_HTTP_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.PARSE: 400,
    ErrorKind.FORMAT_UNSUPPORTED: 415,
    ErrorKind.INTEGRITY: 422,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}

# 2 is left to argparse for usage errors.
_EXIT_CODES = {
    ErrorKind.INTERNAL: 1,
    ErrorKind.VALIDATION: 3,
    ErrorKind.PARSE: 4,
    ErrorKind.FORMAT_UNSUPPORTED: 5,
    ErrorKind.INTEGRITY: 6,
    ErrorKind.NOT_FOUND: 7,
    ErrorKind.CONFLICT: 8,
}


class ProgramError(Exception):
    def __init__(self, kind: ErrorKind, message: str, field: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.field = field


class FieldValidationError(ProgramError):
    """A single field failed a presence or domain check."""

    def __init__(self, field: str, message: str):
        super().__init__(ErrorKind.VALIDATION, message, field=field)


def not_found(entity: str) -> ProgramError:
    return ProgramError(ErrorKind.NOT_FOUND, f"{entity} not found")
