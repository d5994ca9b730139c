from .classifier import find_duplicates, find_proximate, partition_by_kind
from .client import MiroClient
from .config import Settings
from .errors import (
    ApiError,
    BoardSyncError,
    ConfigError,
    FetchError,
    LayoutError,
    MutationError,
    RateLimitError,
    RecoverableMutationError,
    UnrecoverableMutationError,
)
from .fetcher import fetch_all
from .models import CreateIntent, DeleteIntent, Position, ReconcileResult, RemoteItem, UpdateIntent
from .reconciler import Reconciler
from .report import summarize

__version__ = '0.1.0'
