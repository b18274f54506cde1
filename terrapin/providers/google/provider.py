"""
The Google Cloud provider's configuration.

Only the pre-obtained OAuth2 access tokens are supported (e.g. from
``gcloud auth print-access-token``): no service account keys are parsed,
and no tokens are refreshed during the run.
"""
from terrapin._cogs.configs import configuration
from terrapin._cogs.helpers import typedefs
from terrapin._cogs.structs import credentials
from terrapin._core.schema.data import ResourceData
from terrapin._core.schema.schemas import Schema, ValueType
from terrapin.providers.google.clients import DEFAULT_COMPUTE_URL, GoogleClient

SCHEMA = {
    'project': Schema(ValueType.STRING, optional=True,
                      env=['GOOGLE_PROJECT', 'GOOGLE_CLOUD_PROJECT', 'CLOUDSDK_CORE_PROJECT']),
    'region': Schema(ValueType.STRING, optional=True,
                     env=['GOOGLE_REGION', 'CLOUDSDK_COMPUTE_REGION']),
    'zone': Schema(ValueType.STRING, optional=True,
                   env=['GOOGLE_ZONE', 'CLOUDSDK_COMPUTE_ZONE']),
    'access_token': Schema(ValueType.STRING, optional=True, sensitive=True,
                           env=['GOOGLE_OAUTH_ACCESS_TOKEN']),
    'compute_base_url': Schema(ValueType.STRING, optional=True,
                               env=['GOOGLE_COMPUTE_CUSTOM_ENDPOINT'], default=DEFAULT_COMPUTE_URL),
}


async def configure(
        *,
        data: ResourceData,
        settings: configuration.ProviderSettings,
        logger: typedefs.Logger,
) -> GoogleClient:
    token = data.get('access_token')
    if not token:
        raise credentials.LoginError("The access token is not set (try $GOOGLE_OAUTH_ACCESS_TOKEN).")

    info = credentials.ConnectionInfo(
        server=data.get('compute_base_url') or DEFAULT_COMPUTE_URL,
        token=token,
    )
    logger.debug(f"Connecting to Google Compute Engine at {info.server}")
    return GoogleClient(
        info,
        settings=settings,
        project=data.get('project') or None,
        region=data.get('region') or None,
        zone=data.get('zone') or None,
    )
