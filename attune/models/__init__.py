from .log_entry import LogEntry
from .embedding import LogEmbedding, EMBEDDING_DIMENSIONS
from .attunement import DailyAttunement

__all__ = [
    "LogEntry",
    "LogEmbedding",
    "EMBEDDING_DIMENSIONS",
    "DailyAttunement",
]
