class TeraboxError(Exception):
    """Base error; ``status`` is the HTTP status the failure is reported with."""

    status = 500

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class MissingInput(TeraboxError):
    status = 400


class MissingShareIdentifier(TeraboxError):
    status = 400


class MissingToken(TeraboxError):
    status = 400


class EmptyFileList(TeraboxError):
    status = 400


class DirectLinkResolutionFailed(TeraboxError):
    status = 500


class TooManyRedirects(TeraboxError):
    status = 500


class Timeout(TeraboxError):
    status = 504


class UpstreamError(TeraboxError):
    status = 502
