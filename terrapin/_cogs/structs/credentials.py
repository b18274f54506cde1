"""
Connection-related structures.

Only the information passed to the HTTP protocol and TCP/SSL connection
is stored here, i.e. everything usable in a generic HTTP client:

* Server's base URL (with the host & port, and the API root if needed).
* SSL verification/ignorance flag.
* SSL certificate authority.
* SSL client certificate and its private key.
* HTTP ``Authorization: Basic username:password``.
* HTTP ``Authorization: Bearer token`` (or other schemes).

How the tokens and certificates are obtained is not our concern:
they are taken as given from the providers' configuration.
"""
import dataclasses


class LoginError(Exception):
    """ Raised when the connection info cannot be composed from the configuration. """


@dataclasses.dataclass(frozen=True)
class ConnectionInfo:
    """
    A single endpoint with specific credentials and connection flags to use.
    """
    server: str  # e.g. "https://localhost:443"
    ca_path: str | None = None
    ca_data: str | bytes | None = None
    insecure: bool | None = None
    username: str | None = None
    password: str | None = None
    scheme: str | None = None  # RFC-7235/5.1: e.g. Bearer, Basic, Digest, etc.
    token: str | None = None
    certificate_path: str | None = None
    certificate_data: str | bytes | None = None
    private_key_path: str | None = None
    private_key_data: str | bytes | None = None
    default_namespace: str | None = None
