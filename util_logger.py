"""
Unified Logger System.

JSON-only structured logging for the release orchestrator running on
Azure Functions with Application Insights.

Design Principles:
    - Strong typing with dataclasses (stdlib only)
    - Enum safety for component categories
    - Component-specific loggers
    - Release/task correlation through customDimensions

Exports:
    ComponentType: Enum for component types
    LogLevel: Enum for log levels
    LogContext: Release/task correlation dataclass
    LoggerFactory: Factory for creating loggers
    JSONFormatter: Application Insights compatible formatter
    log_exceptions: Exception logging decorator
    timed_operation: Context manager that logs operation duration

Dependencies:
    Standard library only (logging, enum, dataclasses, json)
"""

from enum import Enum
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from dataclasses import dataclass
from contextlib import contextmanager
from functools import wraps
import logging
import sys
import os
import json
import time
import traceback


# ============================================================================
# COMPONENT TYPES - Aligned with orchestrator layers
# ============================================================================

class ComponentType(Enum):
    """
    Component types aligned with orchestrator layers.

    Each layer has specific logging needs and levels.
    """
    TRIGGER = "trigger"            # HTTP and timer entry points
    ORCHESTRATOR = "orchestrator"  # Scheduler, state machine, executor, gate, locks
    SERVICE = "service"            # Business services (rollout, collaborators)
    REPOSITORY = "repository"      # Data access layer
    FACTORY = "factory"            # Object creation layer
    ADAPTER = "adapter"            # External integration clients (httpx)
    VALIDATOR = "validator"        # Input and configuration validation


# ============================================================================
# LOG LEVELS - Standard Python levels with enum safety
# ============================================================================

class LogLevel(Enum):
    """Standard Python log levels as enum for type safety."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_python_level(self) -> int:
        """Convert to Python logging level constant."""
        return getattr(logging, self.value)

    @classmethod
    def from_string(cls, level: str) -> 'LogLevel':
        """Create from string, case-insensitive."""
        return cls[level.upper()]


# ============================================================================
# LOG CONTEXT - Correlation and tracking
# ============================================================================

@dataclass
class LogContext:
    """
    Context for log correlation across a release tick.

    A tick touches one release at a time, so release_id is the primary
    correlation key. Task and cycle identifiers narrow it further.
    """
    # Release-level correlation
    release_id: Optional[str] = None
    tenant_id: Optional[str] = None

    # Task-level correlation
    task_id: Optional[str] = None
    task_type: Optional[str] = None
    cycle_id: Optional[str] = None

    # Stage tracking (1..4)
    stage: Optional[int] = None

    # Request correlation
    request_id: Optional[str] = None
    tick_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            k: v for k, v in {
                'release_id': self.release_id,
                'tenant_id': self.tenant_id,
                'task_id': self.task_id,
                'task_type': self.task_type,
                'cycle_id': self.cycle_id,
                'stage': self.stage,
                'request_id': self.request_id,
                'tick_id': self.tick_id,
            }.items() if v is not None
        }


# ============================================================================
# COMPONENT CONFIGURATION - Per-component settings
# ============================================================================

@dataclass
class ComponentConfig:
    """
    Configuration for component-specific logging.

    Each component type can have different settings.
    """
    component_type: ComponentType
    log_level: LogLevel = LogLevel.INFO
    enable_performance_logging: bool = False
    enable_debug_context: bool = False


# ============================================================================
# JSON FORMATTER - Structured logging for Azure Functions
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging in Azure Functions.
    Outputs logs in a format that Application Insights can automatically parse.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name,
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        # Application Insights picks these up as customDimensions
        if hasattr(record, 'custom_dimensions'):
            log_obj['customDimensions'] = record.custom_dimensions

        if record.exc_info:
            log_obj['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': self.formatException(record.exc_info)
            }

        return json.dumps(log_obj, default=str)


# ============================================================================
# LOGGER FACTORY - Creates component-specific loggers
# ============================================================================

class LoggerFactory:
    """
    Factory for creating component-specific loggers.

    Example:
        logger = LoggerFactory.create_logger(
            ComponentType.ORCHESTRATOR,
            "TickScheduler"
        )
        logger.info("⏰ Tick started")
    """

    _default_level = LogLevel.DEBUG if os.getenv('DEBUG_LOGGING', '').lower() == 'true' else LogLevel.INFO

    DEFAULT_CONFIGS = {
        ComponentType.TRIGGER: ComponentConfig(
            component_type=ComponentType.TRIGGER,
            log_level=_default_level,
            enable_performance_logging=True
        ),
        ComponentType.ORCHESTRATOR: ComponentConfig(
            component_type=ComponentType.ORCHESTRATOR,
            log_level=_default_level,
            enable_performance_logging=True,
            enable_debug_context=_default_level == LogLevel.DEBUG
        ),
        ComponentType.SERVICE: ComponentConfig(
            component_type=ComponentType.SERVICE,
            log_level=_default_level,
            enable_performance_logging=True
        ),
        ComponentType.REPOSITORY: ComponentConfig(
            component_type=ComponentType.REPOSITORY,
            log_level=LogLevel.DEBUG,  # Always debug for repositories to track SQL
            enable_debug_context=True
        ),
        ComponentType.FACTORY: ComponentConfig(
            component_type=ComponentType.FACTORY,
            log_level=_default_level
        ),
        ComponentType.ADAPTER: ComponentConfig(
            component_type=ComponentType.ADAPTER,
            log_level=_default_level,
            enable_performance_logging=True
        ),
        ComponentType.VALIDATOR: ComponentConfig(
            component_type=ComponentType.VALIDATOR,
            log_level=_default_level
        ),
    }

    @classmethod
    def create_logger(
        cls,
        component_type: ComponentType,
        name: str,
        context: Optional[LogContext] = None,
        config: Optional[ComponentConfig] = None
    ) -> logging.Logger:
        """
        Create a logger for a specific component.

        Args:
            component_type: Type of component
            name: Component name (e.g., "ReleaseStateMachine")
            context: Optional log context for correlation
            config: Optional custom configuration

        Returns:
            Configured Python logger
        """
        if config is None:
            config = cls.DEFAULT_CONFIGS.get(
                component_type,
                ComponentConfig(component_type=component_type)
            )

        # Context loggers get their own child name so the wrapper below
        # does not leak one release's context into another's records
        logger_name = f"{component_type.value}.{name}"
        if context and context.release_id:
            logger_name = f"{logger_name}.{context.release_id}"
        logger = logging.getLogger(logger_name)

        log_level = config.log_level.to_python_level()
        logger.setLevel(log_level)

        # Only one JSON handler per logger even when create_logger repeats
        has_json_handler = any(
            isinstance(h.formatter, JSONFormatter) for h in logger.handlers
        )
        if not has_json_handler:
            handler = logging.StreamHandler(sys.stdout)
            handler.setLevel(log_level)
            handler.setFormatter(JSONFormatter())
            logger.addHandler(handler)

        # Propagate to Azure's root logger for Application Insights
        logger.propagate = True

        if not hasattr(logger, '_context_wrapped'):
            original_log = logger._log

            def log_with_context(level, msg, args, exc_info=None, extra=None, stack_info=False, stacklevel=1):
                """Wrapper to inject context as custom dimensions."""
                if extra is None:
                    extra = {}

                custom_dims = context.to_dict() if context else {}
                custom_dims['component_type'] = component_type.value
                custom_dims['component_name'] = name

                if 'custom_dimensions' in extra:
                    custom_dims.update(extra['custom_dimensions'])

                extra['custom_dimensions'] = custom_dims

                # +1 to account for this wrapper frame
                original_log(level, msg, args, exc_info=exc_info, extra=extra,
                             stack_info=stack_info, stacklevel=stacklevel + 1)

            logger._log = log_with_context
            logger._context_wrapped = True

        return logger

    @classmethod
    def create_with_context(
        cls,
        component_type: ComponentType,
        name: str,
        release_id: Optional[str] = None,
        task_id: Optional[str] = None,
        stage: Optional[int] = None
    ) -> logging.Logger:
        """
        Create logger with release/task context.

        Convenience method for creating loggers with common context fields.
        """
        context = LogContext(
            release_id=release_id,
            task_id=task_id,
            stage=stage
        ) if any([release_id, task_id, stage]) else None

        return cls.create_logger(
            component_type=component_type,
            name=name,
            context=context
        )


# ============================================================================
# EXCEPTION DECORATOR - Automatic exception logging with context
# ============================================================================

def log_exceptions(component_type: Optional[ComponentType] = None,
                   component_name: Optional[str] = None,
                   logger: Optional[logging.Logger] = None):
    """
    Decorator to automatically log exceptions with full context.

    Can be used in three ways:
    1. With existing logger: @log_exceptions(logger=my_logger)
    2. With component info: @log_exceptions(ComponentType.SERVICE, "RolloutController")
    3. Simple: @log_exceptions() - uses function module and name

    The exception is always re-raised.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if logger:
                log = logger
            elif component_type and component_name:
                log = LoggerFactory.create_logger(component_type, component_name)
            else:
                log = LoggerFactory.create_logger(
                    ComponentType.SERVICE,
                    func.__module__ or "unknown"
                )

            try:
                return func(*args, **kwargs)
            except Exception as e:
                log.error(
                    f"❌ Exception in {func.__name__}",
                    exc_info=True,
                    extra={
                        'custom_dimensions': {
                            'function_name': func.__name__,
                            'function_module': func.__module__,
                            'exception_type': type(e).__name__,
                            'exception_message': str(e),
                            'function_args': str(args)[:500],
                            'function_kwargs': str(kwargs)[:500],
                            'traceback': traceback.format_exc()
                        }
                    }
                )
                raise
        return wrapper
    return decorator


# ============================================================================
# TIMING - Duration logging for orchestration steps
# ============================================================================

@contextmanager
def timed_operation(logger: logging.Logger, operation_name: str, **extra_fields):
    """
    Log the duration of a block at DEBUG (INFO when it fails).

    Usage:
        with timed_operation(logger, "advance_stage", release_id=release_id):
            ...
    """
    start_time = time.monotonic()
    try:
        yield
    except Exception:
        duration_ms = round((time.monotonic() - start_time) * 1000, 1)
        logger.info(
            f"⏱️ {operation_name} failed after {duration_ms}ms",
            extra={'custom_dimensions': {**extra_fields, 'operation': operation_name,
                                         'duration_ms': duration_ms}}
        )
        raise
    duration_ms = round((time.monotonic() - start_time) * 1000, 1)
    logger.debug(
        f"⏱️ {operation_name} took {duration_ms}ms",
        extra={'custom_dimensions': {**extra_fields, 'operation': operation_name,
                                     'duration_ms': duration_ms}}
    )


__all__ = [
    'ComponentType',
    'LogLevel',
    'LogContext',
    'ComponentConfig',
    'JSONFormatter',
    'LoggerFactory',
    'log_exceptions',
    'timed_operation',
]
