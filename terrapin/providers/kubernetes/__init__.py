"""
The Kubernetes provider: RBAC roles and role bindings.
"""
from terrapin._core.schema.schemas import Provider
from terrapin.providers.kubernetes.provider import SCHEMA, configure
from terrapin.providers.kubernetes.role import role
from terrapin.providers.kubernetes.role_binding import role_binding

provider = Provider(
    name='kubernetes',
    schema=SCHEMA,
    resources={
        'kubernetes_role': role,
        'kubernetes_role_binding': role_binding,
    },
    configure=configure,
)
