class BoardSyncError(Exception):
    pass


class ConfigError(BoardSyncError, ValueError):
    pass


class LayoutError(BoardSyncError):
    pass


class ApiError(BoardSyncError):
    """Non-2xx response (or transport failure, ``status is None``) from the Miro API."""

    def __init__(self, status, reason, url, details=None):
        self.status = status
        self.reason = reason
        self.url = url
        self.details = details
        super().__init__(f'{status} {reason} - {url}')

    def to_dict(self):
        return {
            'status': self.status,
            'status_text': self.reason,
            'request_url': self.url,
            'error_details': self.details
        }


class FetchError(BoardSyncError):
    """A page could not be read; the whole fetch is abandoned."""

    def __init__(self, page_index, cause):
        self.page_index = page_index
        self.cause = cause
        super().__init__(f'Fetch failed on page {page_index}: {cause}')


class MutationError(BoardSyncError):
    def __init__(self, intent, cause, message=None):
        self.intent = intent
        self.cause = cause
        super().__init__(message or str(cause))


class RecoverableMutationError(MutationError):
    """Target already absent (delete) or already present (create)."""


class UnrecoverableMutationError(MutationError):
    pass


class RateLimitError(MutationError):
    pass
