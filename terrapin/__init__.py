"""
The main terrapin module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the top-level interface,
# as it is seen by the users. So, we export the individual names.

from terrapin._cogs.clients.errors import (
    APIError,
    APIClientError,
    APIServerError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
    APITooManyRequestsError,
)
from terrapin._cogs.configs.configuration import (
    ProviderSettings,
    NetworkingSettings,
    OperationSettings,
    PlanningSettings,
)
from terrapin._cogs.helpers.typedefs import (
    Logger,
)
from terrapin._cogs.helpers.versions import (
    version as __version__,
)
from terrapin._cogs.structs.credentials import (
    LoginError,
    ConnectionInfo,
)
from terrapin._core.engines.applying import (
    ResourceError,
    StateError,
    Metas,
    apply,
    destroy,
    import_resource,
    make_plan,
    refresh,
    run,
)
from terrapin._core.engines.documents import (
    Configuration,
    ResourceConfig,
    StateEntry,
    DocumentError,
    load_configuration,
    load_state,
    save_state,
)
from terrapin._core.engines.loggers import (
    LogFormat,
    ObjectLogger,
    configure as configure_logging,
)
from terrapin._core.engines.planning import (
    Action,
    Change,
)
from terrapin._core.registries import (
    ProviderRegistry,
    RegistryError,
    get_default_registry,
    set_default_registry,
)
from terrapin._core.schema.data import (
    ResourceData,
)
from terrapin._core.schema.schemas import (
    Block,
    ConfigurationError,
    Provider,
    Resource,
    Schema,
    ValueType,
    validate,
)

__all__ = [
    'APIError',
    'APIClientError',
    'APIServerError',
    'APIUnauthorizedError',
    'APIForbiddenError',
    'APINotFoundError',
    'APIConflictError',
    'APITooManyRequestsError',
    'ProviderSettings',
    'NetworkingSettings',
    'OperationSettings',
    'PlanningSettings',
    'Logger',
    'LoginError',
    'ConnectionInfo',
    'ResourceError',
    'StateError',
    'Metas',
    'apply',
    'destroy',
    'import_resource',
    'make_plan',
    'refresh',
    'run',
    'Configuration',
    'ResourceConfig',
    'StateEntry',
    'DocumentError',
    'load_configuration',
    'load_state',
    'save_state',
    'LogFormat',
    'ObjectLogger',
    'configure_logging',
    'Action',
    'Change',
    'ProviderRegistry',
    'RegistryError',
    'get_default_registry',
    'set_default_registry',
    'ResourceData',
    'Block',
    'ConfigurationError',
    'Provider',
    'Resource',
    'Schema',
    'ValueType',
    'validate',
]
