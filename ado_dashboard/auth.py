"""Turns caller-supplied credentials into Azure DevOps request headers."""

import logging
import os
from base64 import b64encode
from dataclasses import dataclass

from .errors import AdoAuthenticationError

logger = logging.getLogger(__name__)


@dataclass
class AuthCredential:
    """Represents an authentication credential."""

    token: str
    auth_type: str = "basic"  # 'basic' or 'bearer'
    method: str = "pat"

    def to_header(self) -> dict[str, str]:
        """Convert credential to HTTP Authorization header."""
        if self.auth_type == "basic":
            encoded_token = b64encode(f":{self.token}".encode("ascii")).decode("ascii")
            return {"Authorization": f"Basic {encoded_token}"}
        elif self.auth_type == "bearer":
            return {"Authorization": f"Bearer {self.token}"}
        else:
            raise ValueError(f"Unknown auth type: {self.auth_type}")

    def __repr__(self) -> str:
        return f"AuthCredential(auth_type={self.auth_type!r}, method={self.method!r})"


def resolve_credential(
    credentials: "str | AuthCredential | None", env_var: str = "AZURE_DEVOPS_EXT_PAT"
) -> AuthCredential:
    """
    Pick the credential to use for a request.

    An explicit credential (or PAT string) wins; otherwise the PAT from the
    environment variable is used.

    Raises:
        AdoAuthenticationError: If neither is available.
    """
    if isinstance(credentials, AuthCredential):
        return credentials

    if credentials:
        return AuthCredential(token=credentials, method="pat")

    env_pat = os.getenv(env_var)
    if env_pat:
        logger.debug(f"Using PAT from {env_var}")
        return AuthCredential(token=env_pat, method="env_pat")

    raise AdoAuthenticationError(
        f"No credentials supplied and {env_var} is not set.",
        context={"env_var": env_var},
    )


def build_headers(credential: AuthCredential) -> dict[str, str]:
    """Full header set for JSON REST calls."""
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    headers.update(credential.to_header())
    return headers
