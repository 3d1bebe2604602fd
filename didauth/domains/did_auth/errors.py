class DIDAuthError(Exception):
    """Base class for failures in the DID challenge flow."""


class NoPendingChallenge(DIDAuthError):
    """The browser session holds no challenge (or no resolved one) to act on."""


class ChallengeNotFound(DIDAuthError):
    """Unknown state, not verified yet, or outside its freshness window."""


class SignatureInvalid(DIDAuthError):
    """The wallet payload could not be parsed or its signature did not verify."""


class StateCollisionError(DIDAuthError):
    """A challenge with the same state token already exists."""


class DIDAuthNotConfigured(DIDAuthError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"DID signing is not configured; missing={','.join(missing)}")
        self.missing = missing
