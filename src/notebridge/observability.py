"""Observability utilities for the notebridge server.

Provides rotating file logging, per-operation timing metrics and
correlation-id tracing for engine calls.
"""
import functools
import inspect
import json
import logging
import time
import uuid
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

# Root of the package logger hierarchy
ROOT_LOGGER_NAME = "notebridge"

DEFAULT_LOG_DIR = Path.home() / ".notebridge" / "logs"
DEFAULT_METRICS_FILE = Path.home() / ".notebridge" / "metrics.json"

# Logging format with ISO 8601 timestamps
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

F = TypeVar('F', bound=Callable[..., Any])


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    console: bool = True,
) -> Path:
    """Configure persistent file logging with rotation.

    Attaches a rotating file handler (and optionally a console handler) to
    the ``notebridge`` logger, so every module logger created with
    ``logging.getLogger(__name__)`` inside the package writes through it.

    Args:
        log_dir: Directory for log files. Defaults to ~/.notebridge/logs/
        level: Logging level (default: INFO)
        max_bytes: Maximum size per log file before rotation (default: 5 MB)
        backup_count: Number of rotated files to keep (default: 3)
        console: Also log to the console (stderr)

    Returns:
        Path to the log directory
    """
    log_path = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    log_path.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    log_file = log_path / "notebridge.log"
    if not any(isinstance(h, RotatingFileHandler) for h in root_logger.handlers):
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # stdout carries the MCP stdio transport, so the console handler uses stderr
    if console and not any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)
        for h in root_logger.handlers
    ):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    root_logger.info(f"Logging configured: {log_file} (max {max_bytes} bytes, {backup_count} backups)")

    return log_path


@dataclass
class OperationMetrics:
    """Running counters for one operation name."""
    count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_duration_ms: float = 0.0
    min_duration_ms: Optional[float] = None
    max_duration_ms: float = 0.0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None

    def add(self, duration_ms: float, success: bool, error: Optional[str]) -> None:
        self.count += 1
        self.total_duration_ms += duration_ms
        if self.min_duration_ms is None or duration_ms < self.min_duration_ms:
            self.min_duration_ms = duration_ms
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        if success:
            self.success_count += 1
        else:
            self.error_count += 1
            self.last_error = error
            self.last_error_time = datetime.now(timezone.utc)

    def snapshot(self) -> Dict[str, Any]:
        """Rounded, display-ready view used by get_metrics()."""
        return {
            "count": self.count,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "success_rate": self.success_count / self.count if self.count else 0,
            "avg_duration_ms": round(self.total_duration_ms / self.count, 2) if self.count else 0,
            "min_duration_ms": round(self.min_duration_ms or 0.0, 2),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "last_error": self.last_error,
            "last_error_time": _isoformat(self.last_error_time),
        }

    def to_record(self) -> Dict[str, Any]:
        """Raw counters as stored in the metrics file."""
        record = asdict(self)
        record["last_error_time"] = _isoformat(self.last_error_time)
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "OperationMetrics":
        known = {k: v for k, v in record.items() if k in cls.__dataclass_fields__}
        if known.get("last_error_time"):
            known["last_error_time"] = datetime.fromisoformat(known["last_error_time"])
        return cls(**known)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class MetricsCollector:
    """Thread-safe metrics collection for engine and tool operations.

    Counts calls, failures and durations per operation name
    (``search_notes``, ``nb_search``, ...) and persists them as JSON so
    ``nb_status`` survives restarts.
    """

    def __init__(
        self,
        metrics_file: Optional[Union[str, Path]] = None,
        auto_save_interval: int = 100,
        load_existing: bool = True,
    ):
        """Initialize the metrics collector.

        Args:
            metrics_file: Path to persist metrics. Defaults to ~/.notebridge/metrics.json
            auto_save_interval: Save to disk every N operations (0 to disable)
            load_existing: Restore previously saved metrics from metrics_file
        """
        self._metrics: Dict[str, OperationMetrics] = defaultdict(OperationMetrics)
        self._lock = Lock()
        self._start_time = datetime.now(timezone.utc)
        self._metrics_file = Path(metrics_file) if metrics_file else DEFAULT_METRICS_FILE
        self._auto_save_interval = auto_save_interval
        self._unsaved = 0

        if load_existing:
            self._load_metrics()

    def record_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error: Optional[str] = None
    ) -> None:
        """Record one call of ``operation``; failures keep their error text."""
        with self._lock:
            self._metrics[operation].add(duration_ms, success, error)
            self._unsaved += 1
            if 0 < self._auto_save_interval <= self._unsaved:
                self._save_metrics_unlocked()

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Get a snapshot of all metrics, keyed by operation name."""
        with self._lock:
            return {op: m.snapshot() for op, m in self._metrics.items()}

    def get_summary(self) -> Dict[str, Any]:
        """Get aggregate statistics across all operations."""
        with self._lock:
            total_ops = sum(m.count for m in self._metrics.values())
            total_success = sum(m.success_count for m in self._metrics.values())
            return {
                'uptime_seconds': (datetime.now(timezone.utc) - self._start_time).total_seconds(),
                'total_operations': total_ops,
                'total_success': total_success,
                'total_errors': sum(m.error_count for m in self._metrics.values()),
                'overall_success_rate': total_success / total_ops if total_ops > 0 else 1.0,
                'operations_tracked': list(self._metrics.keys())
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._metrics.clear()
            self._start_time = datetime.now(timezone.utc)
            self._unsaved = 0

    def _load_metrics(self) -> bool:
        """Load metrics from disk. Returns True if anything was restored."""
        if not self._metrics_file.exists():
            return False
        try:
            data = json.loads(self._metrics_file.read_text(encoding="utf-8"))
            if "start_time" in data:
                self._start_time = datetime.fromisoformat(data["start_time"])
            for op_name, record in data.get("operations", {}).items():
                self._metrics[op_name] = OperationMetrics.from_record(record)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to load metrics from {self._metrics_file}: {e}")
            self._metrics.clear()
            return False
        logger.debug(f"Loaded metrics from {self._metrics_file}")
        return True

    def _save_metrics_unlocked(self) -> bool:
        """Save metrics to disk (must be called with lock held)."""
        data = {
            "start_time": self._start_time.isoformat(),
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "operations": {op: m.to_record() for op, m in self._metrics.items()},
        }
        try:
            self._metrics_file.parent.mkdir(parents=True, exist_ok=True)
            # Atomic write via temp file
            temp_file = self._metrics_file.with_suffix(".tmp")
            temp_file.write_text(json.dumps(data, indent=2), encoding="utf-8")
            temp_file.replace(self._metrics_file)
        except OSError as e:
            logger.error(f"Failed to save metrics to {self._metrics_file}: {e}")
            return False
        self._unsaved = 0
        return True

    def save_metrics(self) -> bool:
        """Explicitly save metrics to disk. Returns True on success."""
        with self._lock:
            return self._save_metrics_unlocked()


# Global metrics collector instance
metrics = MetricsCollector()


@contextmanager
def timed_operation(operation: str, **context):
    """Context manager for timing and logging operations.

    Args:
        operation: Name of the operation being performed
        **context: Additional context to include in log messages

    Yields:
        A dictionary where you can store result info (e.g., result_count)

    Example:
        with timed_operation('search_notes', query='test') as op:
            results = search_notes(corpus, 'test')
            op['result_count'] = len(results)
    """
    correlation_id = str(uuid.uuid4())[:8]
    start_time = time.perf_counter()
    result_info: Dict[str, Any] = {'correlation_id': correlation_id}

    context_str = ', '.join(f'{k}={v}' for k, v in context.items())
    logger.debug(f"[{correlation_id}] START {operation} ({context_str})")

    error_msg = None
    success = True

    try:
        yield result_info
    except Exception as e:
        success = False
        error_msg = str(e)
        raise
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        metrics.record_operation(operation, duration_ms, success, error_msg)

        result_str = ', '.join(f'{k}={v}' for k, v in result_info.items() if k != 'correlation_id')
        status = 'OK' if success else f'ERROR: {error_msg}'
        logger.debug(
            f"[{correlation_id}] END {operation} "
            f"({duration_ms:.2f}ms) [{status}] {result_str}"
        )


# Engine arguments worth echoing in START lines
_TRACED_ARGS = ("note_id", "query", "subject", "exclude_id")


def _result_size(result: Any) -> Optional[int]:
    if isinstance(result, dict):
        # Relation bundles: total entries across relation lists
        return sum(len(v) for v in result.values() if hasattr(v, '__len__'))
    if hasattr(result, 'edges'):
        return len(result.edges)
    if hasattr(result, '__len__'):
        return len(result)
    return None


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Decorator for automatic operation tracing.

    Wraps the call in timed_operation, so it is timed, counted in
    ``metrics`` and logged at DEBUG with a correlation id. The corpus size
    and any of note_id/query/subject/exclude_id are logged on START, the
    result size on END.

    Example:
        @traced('search_notes')
        def search_notes(notes, query, limit=None):
            ...
    """
    def decorator(func: F) -> F:
        op_name = operation_name or func.__name__
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            bound = signature.bind_partial(*args, **kwargs).arguments
            context: Dict[str, Any] = {}
            if 'notes' in bound and hasattr(bound['notes'], '__len__'):
                context['corpus'] = len(bound['notes'])
            for name in _TRACED_ARGS:
                if bound.get(name):
                    context[name] = str(bound[name])[:30]

            with timed_operation(op_name, **context) as op:
                result = func(*args, **kwargs)
                size = _result_size(result)
                if size is not None:
                    op['result_count'] = size
                return result

        return wrapper  # type: ignore
    return decorator
