"""
Detecting the package's own version from the installed distribution.

It is used in the User-Agent headers of the API requests and in the CLI.
The version is determined only once at startup when the code is loaded.
"""
import importlib.metadata

version: str | None = None

try:
    name, *_ = __name__.split('.')  # usually "terrapin", unless renamed/forked.
    version = importlib.metadata.version(name)
except importlib.metadata.PackageNotFoundError:
    pass  # running from a source checkout without installation.
