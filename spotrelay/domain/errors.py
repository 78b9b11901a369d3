from typing import Any, Optional


class RelayError(Exception):
    """Base error rendered as a JSON error envelope by the HTTP layer."""

    status_code = 500

    def __init__(self, summary: str, details: Optional[Any] = None) -> None:
        super().__init__(summary)
        self.summary = summary
        self.details = details

    def to_dict(self) -> dict:
        return {'error': self.summary, 'details': self.details}


class BadRequest(RelayError):
    """Required request input is missing or invalid."""

    status_code = 400


class AuthError(RelayError):
    """No usable access token and no refresh token to obtain one."""

    status_code = 401

    def __init__(self, summary: str = "Not authorized",
                 details: Optional[Any] = "Complete the authorization flow at /auth first") -> None:
        super().__init__(summary, details)


class ProviderError(RelayError):
    """Upstream call failed or returned an error body. Carries the provider's payload."""

    status_code = 500
