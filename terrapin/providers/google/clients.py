from typing import Any, Mapping

from terrapin._cogs.clients import api, auth
from terrapin._cogs.configs import configuration
from terrapin._cogs.helpers import typedefs
from terrapin._cogs.structs import credentials
from terrapin._core.schema.data import ResourceData

DEFAULT_COMPUTE_URL = 'https://compute.googleapis.com/compute/v1/'


class ProjectError(Exception):
    """ Raised when the project is set neither in the resource nor in the provider. """


class GoogleClient:
    """
    The provider's "meta": a pre-configured client for the Compute Engine API.

    The URLs are relative to the API's root, e.g. ``projects/p/global/snapshots``.
    The operations' self-links (absolute URLs) are accepted as is.
    """

    def __init__(
            self,
            info: credentials.ConnectionInfo,
            *,
            settings: configuration.ProviderSettings,
            project: str | None = None,
            region: str | None = None,
            zone: str | None = None,
    ) -> None:
        super().__init__()
        self.info = info
        self.settings = settings
        self.project = project
        self.region = region
        self.zone = zone
        self.context = auth.APIContext(info)

    async def close(self) -> None:
        await self.context.close()

    def get_project(self, data: ResourceData) -> str:
        """ The resource's own project if set, otherwise the provider's one. """
        project, ok = data.get_ok('project')
        if ok:
            return str(project)
        if self.project:
            return self.project
        raise ProjectError("The project is set neither in the resource nor in the provider.")

    async def get(self, url: str, *, logger: typedefs.Logger) -> Any:
        return await api.get(url, context=self.context, settings=self.settings, logger=logger)

    async def post(self, url: str, *, body: Mapping[str, Any], logger: typedefs.Logger) -> Any:
        return await api.post(url, payload=body, context=self.context, settings=self.settings, logger=logger)

    async def delete(self, url: str, *, logger: typedefs.Logger) -> Any:
        return await api.delete(url, context=self.context, settings=self.settings, logger=logger)
