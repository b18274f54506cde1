"""
The Google Cloud provider: Compute Engine disks and snapshots.
"""
from terrapin._core.schema.schemas import Provider
from terrapin.providers.google.compute_disk import compute_disk
from terrapin.providers.google.compute_snapshot import compute_snapshot
from terrapin.providers.google.provider import SCHEMA, configure

provider = Provider(
    name='google',
    schema=SCHEMA,
    resources={
        'google_compute_disk': compute_disk,
        'google_compute_snapshot': compute_snapshot,
    },
    configure=configure,
)
