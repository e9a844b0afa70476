class SSOError(Exception):
    """Base class for every SSO token or app-session failure.

    Callers never grant partial trust on any subclass: the integration layer
    turns all of them into a redirect to the portal login.
    """

    kind = "sso_error"


class Unauthenticated(SSOError):
    kind = "unauthenticated"


class Malformed(SSOError):
    kind = "malformed"


class Expired(SSOError):
    kind = "expired"


class WrongAudience(SSOError):
    kind = "wrong_audience"
