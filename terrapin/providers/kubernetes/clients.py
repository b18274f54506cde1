from typing import Any, Mapping

from terrapin._cogs.clients import api, auth
from terrapin._cogs.configs import configuration
from terrapin._cogs.helpers import typedefs
from terrapin._cogs.structs import credentials, patches, references

RawBody = dict[str, Any]


class KubernetesClient:
    """
    The provider's "meta": a pre-configured client for all Kubernetes resources.

    All methods escalate the API errors as they are. Specifically, HTTP 404
    is raised as :class:`errors.APINotFoundError`, so that the resources
    could decide whether the absence of the object is an error or not.
    """

    def __init__(
            self,
            info: credentials.ConnectionInfo,
            *,
            settings: configuration.ProviderSettings,
    ) -> None:
        super().__init__()
        self.info = info
        self.settings = settings
        self.context = auth.APIContext(info)

    async def close(self) -> None:
        await self.context.close()

    async def read_obj(
            self,
            resource: references.Resource,
            *,
            namespace: str | None,
            name: str,
            logger: typedefs.Logger,
    ) -> RawBody:
        body: RawBody = await api.get(
            url=resource.get_url(namespace=namespace, name=name),
            context=self.context,
            settings=self.settings,
            logger=logger,
        )
        return body

    async def create_obj(
            self,
            resource: references.Resource,
            *,
            body: Mapping[str, Any],
            logger: typedefs.Logger,
    ) -> RawBody:
        namespace = body.get('metadata', {}).get('namespace') if resource.namespaced else None
        created_body: RawBody = await api.post(
            url=resource.get_url(namespace=namespace),
            payload=body,
            context=self.context,
            settings=self.settings,
            logger=logger,
        )
        return created_body

    async def patch_obj(
            self,
            resource: references.Resource,
            *,
            namespace: str | None,
            name: str,
            patch: patches.JSONPatch,
            logger: typedefs.Logger,
    ) -> RawBody:
        """
        Patch a resource with a JSON-patch (RFC 6902), as a sequence of operations.
        """
        patched_body: RawBody = await api.patch(
            url=resource.get_url(namespace=namespace, name=name),
            headers={'Content-Type': 'application/json-patch+json'},
            payload=patch,
            context=self.context,
            settings=self.settings,
            logger=logger,
        )
        return patched_body

    async def delete_obj(
            self,
            resource: references.Resource,
            *,
            namespace: str | None,
            name: str,
            logger: typedefs.Logger,
    ) -> None:
        await api.delete(
            url=resource.get_url(namespace=namespace, name=name),
            context=self.context,
            settings=self.settings,
            logger=logger,
        )
