"""Batch engine contract and the asyncio reference engine."""

from migrun.migration.engine.batch import AsyncBatchEngine, load_processor_factory
from migrun.migration.engine.memory import InMemoryRecordProcessor
from migrun.migration.engine.protocol import BatchEngine, RecordProcessor

__all__ = [
    "AsyncBatchEngine",
    "BatchEngine",
    "InMemoryRecordProcessor",
    "RecordProcessor",
    "load_processor_factory",
]
