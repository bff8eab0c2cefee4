"""
Brainprep Integration Module

Knowledge store write interception and CMS lifecycle hooks.
"""

from .interceptor import (
    BrainServiceInterceptor,
    PreparedWrite,
    StoreAck,
    StoreOutcome,
    raw_node,
)
from .hooks import (
    HookAdapter,
    HookConfig,
    project_id_of,
    project_based,
    project,
    queued,
    custom,
)

__all__ = [
    'BrainServiceInterceptor',
    'PreparedWrite',
    'StoreAck',
    'StoreOutcome',
    'raw_node',
    'HookAdapter',
    'HookConfig',
    'project_id_of',
    'project_based',
    'project',
    'queued',
    'custom',
]
