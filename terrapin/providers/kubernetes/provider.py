"""
The Kubernetes provider's configuration and login.

The connection info is composed from two sources: the kubeconfig files
(unless disabled with ``load_config_file: false``), and the explicit fields
of the provider's configuration, which override the kubeconfig's values.

Authentication capabilities are limited to what can be taken from the files
and fields as is: tokens, basic auth, client certificates. No external
commands or token-refreshing plugins are executed.
"""
import dataclasses
import os
from typing import Any

import yaml

from terrapin._cogs.configs import configuration
from terrapin._cogs.helpers import typedefs
from terrapin._cogs.structs import credentials
from terrapin._core.schema.data import ResourceData
from terrapin._core.schema.schemas import Schema, ValueType
from terrapin.providers.kubernetes.clients import KubernetesClient

SCHEMA = {
    'host': Schema(ValueType.STRING, optional=True, env=['KUBE_HOST'],
                   description="The hostname (in form of URI) of the Kubernetes master."),
    'username': Schema(ValueType.STRING, optional=True, env=['KUBE_USER']),
    'password': Schema(ValueType.STRING, optional=True, sensitive=True, env=['KUBE_PASSWORD']),
    'token': Schema(ValueType.STRING, optional=True, sensitive=True, env=['KUBE_TOKEN']),
    'insecure': Schema(ValueType.BOOL, optional=True, env=['KUBE_INSECURE'],
                       description="Whether the server should be accessed without verifying the TLS certificate."),
    'client_certificate': Schema(ValueType.STRING, optional=True, env=['KUBE_CLIENT_CERT_DATA']),
    'client_key': Schema(ValueType.STRING, optional=True, sensitive=True, env=['KUBE_CLIENT_KEY_DATA']),
    'cluster_ca_certificate': Schema(ValueType.STRING, optional=True, env=['KUBE_CLUSTER_CA_CERT_DATA']),
    'config_path': Schema(ValueType.STRING, optional=True, env=['KUBE_CONFIG', 'KUBECONFIG'],
                          default='~/.kube/config'),
    'config_context': Schema(ValueType.STRING, optional=True, env=['KUBE_CTX']),
    'load_config_file': Schema(ValueType.BOOL, optional=True, env=['KUBE_LOAD_CONFIG_FILE'], default=True),
}


async def configure(
        *,
        data: ResourceData,
        settings: configuration.ProviderSettings,
        logger: typedefs.Logger,
) -> KubernetesClient:
    info: credentials.ConnectionInfo | None = None
    if data.get('load_config_file'):
        info = login_with_kubeconfig(
            paths=data.get('config_path'),
            context=data.get('config_context') or None,
            logger=logger,
        )

    overrides: dict[str, Any] = {}
    if data.get('host'):
        overrides['server'] = data.get('host')
    if data.get('token'):
        overrides['token'] = data.get('token')
    if data.get('username'):
        overrides['username'] = data.get('username')
        overrides['password'] = data.get('password') or None
    if data.get('insecure'):
        overrides['insecure'] = True
    if data.get('cluster_ca_certificate'):
        overrides['ca_path'] = None
        overrides['ca_data'] = data.get('cluster_ca_certificate')
    if data.get('client_certificate'):
        overrides['certificate_path'] = None
        overrides['certificate_data'] = data.get('client_certificate')
    if data.get('client_key'):
        overrides['private_key_path'] = None
        overrides['private_key_data'] = data.get('client_key')

    if info is None:
        if 'server' not in overrides:
            raise credentials.LoginError("The host is set neither explicitly nor in kubeconfigs.")
        info = credentials.ConnectionInfo(**overrides)
    else:
        info = dataclasses.replace(info, **overrides)

    if not info.server:
        raise credentials.LoginError("The host is set neither explicitly nor in kubeconfigs.")

    logger.debug(f"Connecting to Kubernetes at {info.server}")
    return KubernetesClient(info, settings=settings)


def login_with_kubeconfig(
        *,
        paths: str,
        context: str | None = None,
        logger: typedefs.Logger,
) -> credentials.ConnectionInfo | None:
    """
    A minimalistic login that can get raw data from the kubeconfig files.

    The paths are separated as in ``$KUBECONFIG``; the first value wins.
    The context is the explicitly given one, or the files' current context.
    If none of the files exist, there is no kubeconfig-based login.
    """
    expanded = [os.path.expanduser(path.strip()) for path in paths.split(os.pathsep)]
    existing = [path for path in expanded if path and os.path.exists(path)]
    if not existing:
        logger.debug(f"No kubeconfig files found at {paths!r}.")
        return None

    current_context: str | None = None
    contexts: dict[Any, Any] = {}
    clusters: dict[Any, Any] = {}
    users: dict[Any, Any] = {}
    for path in existing:

        with open(path, encoding='utf-8') as f:
            config = yaml.safe_load(f.read()) or {}

        if current_context is None:
            current_context = config.get('current-context')
        for item in config.get('contexts') or []:
            if item['name'] not in contexts:
                contexts[item['name']] = item.get('context') or {}
        for item in config.get('clusters') or []:
            if item['name'] not in clusters:
                clusters[item['name']] = item.get('cluster') or {}
        for item in config.get('users') or []:
            if item['name'] not in users:
                users[item['name']] = item.get('user') or {}

    # Once fully parsed, use the selected context only.
    context = context or current_context
    if context is None:
        raise credentials.LoginError("Current context is not set in kubeconfigs.")
    if context not in contexts:
        raise credentials.LoginError(f"Context {context!r} is not found in kubeconfigs.")
    ctx = contexts[context]
    cluster = clusters.get(ctx.get('cluster'), {})
    user = users.get(ctx.get('user'), {})

    # We do not make a fake API request to refresh the token.
    provider_token = user.get('auth-provider', {}).get('config', {}).get('access-token')

    logger.debug(f"Using kubeconfig context {context!r} from {existing!r}.")
    return credentials.ConnectionInfo(
        server=cluster.get('server') or '',
        ca_path=cluster.get('certificate-authority'),
        ca_data=cluster.get('certificate-authority-data'),
        insecure=cluster.get('insecure-skip-tls-verify'),
        certificate_path=user.get('client-certificate'),
        certificate_data=user.get('client-certificate-data'),
        private_key_path=user.get('client-key'),
        private_key_data=user.get('client-key-data'),
        username=user.get('username'),
        password=user.get('password'),
        token=user.get('token') or provider_token,
        default_namespace=ctx.get('namespace'),
    )
