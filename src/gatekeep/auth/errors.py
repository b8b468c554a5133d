"""Error taxonomy for the credential subsystem.

Every outcome here is terminal for a single attempt; nothing is retried.
Services raise these, the API layer maps them to status codes.
"""


class AuthError(Exception):
    """Base class for credential subsystem failures."""


class AlreadyExists(AuthError):
    """Registration attempted with a username that is already taken."""

    def __init__(self, username: str):
        super().__init__(f"Username already exists: {username}")
        self.username = username


class AuthenticationFailed(AuthError):
    """Unknown username or wrong password. The two are never distinguished."""

    def __init__(self):
        super().__init__("Invalid credentials")


class Misconfigured(AuthError):
    """The signing secret is missing or empty."""


class InvalidToken(AuthError):
    """Token failed signature, issuer, audience or lifetime checks.

    The message is always the same; ``reason`` carries the diagnostic
    subtype for logging only.
    """

    def __init__(self, reason: str = ""):
        super().__init__("Invalid token")
        self.reason = reason
