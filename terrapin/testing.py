"""
Helper tools to test the providers' resources.

This module is a part of the public interface.
"""
from terrapin._kits.acceptance import (
    ACCEPTANCE_ENV,
    Case,
    CheckFn,
    StateView,
    Step,
    check_no_resource_attr,
    check_resource_attr,
    check_resource_attr_set,
    compose_aggregate_check,
    compose_check,
    destroyed_check,
    exists_check,
    random_name,
    run,
    run_async,
)

__all__ = [
    'ACCEPTANCE_ENV',
    'Case',
    'CheckFn',
    'StateView',
    'Step',
    'check_no_resource_attr',
    'check_resource_attr',
    'check_resource_attr_set',
    'compose_aggregate_check',
    'compose_check',
    'destroyed_check',
    'exists_check',
    'random_name',
    'run',
    'run_async',
]
