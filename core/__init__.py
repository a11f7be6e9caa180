"""
Core Orchestration Components.

Contains the release orchestration building blocks, separated from
persistence and HTTP entry points.

Structure:
    models/: Pure data structures (no orchestration logic)
    logic/: Pure rules (transitions, versioning, sequencing, scheduling)
    Core orchestration classes

Exports:
    LockManager: Per-release compare-and-set lock
    ManualBuildGate: Upload gate for build tasks in manual mode
    TaskExecutor: Advances a stage's tasks
    ReleaseStateMachine: Per-release stage/pause transitions
    TickScheduler: Batch tick across releases
    RolloutController: Store rollout actions
"""

# Make subpackages available first (no circular dependencies)
from . import models
from . import logic

# Lazy imports to avoid circular dependencies
# These are imported on first access via __getattr__
_LAZY_IMPORTS = {
    'LockManager': '.lock_manager',
    'ManualBuildGate': '.manual_build_gate',
    'TaskExecutor': '.task_executor',
    'ReleaseStateMachine': '.state_machine',
    'TickScheduler': '.scheduler',
    'RolloutController': '.rollout_controller',
}


def __getattr__(name):
    """Lazy import core classes to avoid circular dependencies."""
    if name in _LAZY_IMPORTS:
        from importlib import import_module
        module = import_module(_LAZY_IMPORTS[name], package='core')
        return getattr(module, name)
    raise AttributeError(f"module 'core' has no attribute '{name}'")


__all__ = [
    'LockManager',
    'ManualBuildGate',
    'TaskExecutor',
    'ReleaseStateMachine',
    'TickScheduler',
    'RolloutController',
    'models',
    'logic',
]
