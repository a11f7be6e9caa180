"""
Core Business Logic Package.

Contains pure logic that operates on the data models.
Separated from models to maintain clean architecture.

Exports:
    State transitions: can_task_transition, can_cron_transition, ...
    Versioning: parse_version, bump_version, resolve_first_scheduled_version, ...
    Sequencing: TASK_ORDER, is_task_required, get_task_block_reason, ...
    Scheduling: is_ready_to_start, pop_due_slot
"""

# State transitions
from .transitions import (
    can_task_transition,
    can_cron_transition,
    can_stage_transition,
    can_submission_transition,
    get_task_terminal_states,
    get_task_active_states,
    is_task_terminal,
    is_cron_terminal
)

# Versioning
from .versioning import (
    parse_version,
    format_version,
    bump_version,
    compare_versions,
    resolve_first_scheduled_version,
    is_valid_version,
    latest_version,
    VersionResolver
)

# Sequencing
from .sequencing import (
    TASK_ORDER,
    BlockReason,
    TaskRequirementContext,
    is_task_required,
    get_required_task_types,
    get_ordered_tasks,
    are_previous_tasks_complete,
    get_task_block_reason,
    is_stage_complete
)

# Scheduling
from .scheduling import (
    is_ready_to_start,
    sort_slots,
    pop_due_slot
)

__all__ = [
    # State transitions
    'can_task_transition',
    'can_cron_transition',
    'can_stage_transition',
    'can_submission_transition',
    'get_task_terminal_states',
    'get_task_active_states',
    'is_task_terminal',
    'is_cron_terminal',

    # Versioning
    'parse_version',
    'format_version',
    'bump_version',
    'compare_versions',
    'resolve_first_scheduled_version',
    'is_valid_version',
    'latest_version',
    'VersionResolver',

    # Sequencing
    'TASK_ORDER',
    'BlockReason',
    'TaskRequirementContext',
    'is_task_required',
    'get_required_task_types',
    'get_ordered_tasks',
    'are_previous_tasks_complete',
    'get_task_block_reason',
    'is_stage_complete',

    # Scheduling
    'is_ready_to_start',
    'sort_slots',
    'pop_due_slot',
]
