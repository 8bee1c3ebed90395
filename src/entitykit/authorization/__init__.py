"""Reference authorizers.

Authorization is a required phase of every CRUD call; deployments that
need no access control pass :class:`AllowAllAuthorizer` explicitly.
"""

from entitykit.authorization.authorizers import AllowAllAuthorizer, DenyAllAuthorizer
from entitykit.entity.protocols import AuthorizationResult

__all__ = [
    "AllowAllAuthorizer",
    "AuthorizationResult",
    "DenyAllAuthorizer",
]
