"""mAb Data Integration Demo - raw exports to structured data to a knowledge graph."""

__version__ = "0.1.0"

from .batch import CompleteBatch, generate_complete_batch, get_sample_batch_data
from .config import Config
from .phases import DemoPhase
from .queries import QueryType, execute_query

__all__ = [
    "CompleteBatch",
    "Config",
    "DemoPhase",
    "QueryType",
    "execute_query",
    "generate_complete_batch",
    "get_sample_batch_data",
    "__version__",
]
