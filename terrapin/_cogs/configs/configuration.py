"""
All settings to fine-tune the providers' behaviour.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

The settings are not the providers' configuration: the providers are configured
by the users in the configuration documents (e.g. the cluster's host or
the cloud project), while the settings control how the requests are made,
how long the long-running operations are awaited, and similar aspects
that do not depend on the target system.

Some of the settings are flags, some are scalars, some are optional,
some are not (but all of them have reasonable defaults).
"""
import dataclasses
from typing import Iterable


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: float | None = 5 * 60
    """
    A timeout for one API request, from connecting till the end of the response.
    Measured in seconds. ``None`` means no timeout.
    """

    connect_timeout: float | None = None
    """
    A timeout for establishing the connection only, in seconds.
    """

    error_backoffs: Iterable[float] = (1, 1, 2, 3, 5, 8, 13)
    """
    Backoff intervals in case of retryable errors of the API requests.

    Retryable errors are the connection errors, timeouts, HTTP 5xx and 429.
    All other errors (e.g. 404 or 409) are escalated immediately.

    The total number of attempts is the number of backoffs plus one.
    To disable the retries, set it to ``[]`` or ``()``.
    """


@dataclasses.dataclass
class OperationSettings:
    """
    Settings for awaiting the long-running operations of the cloud APIs.
    """

    delay: float = 10
    """
    How long to wait before the first poll of a freshly started operation.
    Most operations take at least several seconds, so there is no need
    to poll them instantly.
    """

    interval: float = 2
    """
    How long to wait between the polls of a still running operation.
    """

    timeout: float | None = 4 * 60
    """
    How long to wait for an operation to finish before failing, in seconds.
    ``None`` means waiting forever (as long as the operation is running).
    """


@dataclasses.dataclass
class PlanningSettings:

    refresh: bool = True
    """
    Should the resources be refreshed (re-read from the APIs) before planning?

    Without refreshing, the plan is based on the stored state only, and
    the changes made outside of the declarations remain unnoticed.
    """


@dataclasses.dataclass
class ProviderSettings:
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    operations: OperationSettings = dataclasses.field(default_factory=OperationSettings)
    planning: PlanningSettings = dataclasses.field(default_factory=PlanningSettings)
