"""fieldguard: sensitive-data detection and masking for text fields."""

from .engine import Engine, EngineConfig, Sweeper
from .middleware import FieldSession, FieldResult
from .custom import CustomPattern, PatternRegistry
from .gate import CancellationToken, GateConfig
from .remote import HttpClassifier, HttpTelemetrySink
from .config import create_engine, load_config, load_from_yaml
from .errors import ClassifierError, FieldGuardError, PatternError, QuotaExceededError
from .types import (
    Action,
    BuiltinCategory,
    CustomCategory,
    FieldDescriptor,
    FieldKind,
    QueueItem,
    RegistrationReport,
    RemoteOutcome,
    Span,
)

__all__ = [
    "Engine", "EngineConfig", "Sweeper",
    "FieldSession", "FieldResult",
    "CustomPattern", "PatternRegistry",
    "CancellationToken", "GateConfig",
    "HttpClassifier", "HttpTelemetrySink",
    "create_engine", "load_config", "load_from_yaml",
    "FieldGuardError", "PatternError", "ClassifierError", "QuotaExceededError",
    "Action", "BuiltinCategory", "CustomCategory", "FieldDescriptor", "FieldKind",
    "QueueItem", "RegistrationReport", "RemoteOutcome", "Span",
]
__version__ = "0.1.0"
