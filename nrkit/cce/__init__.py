"""Worldtube data for Cauchy-characteristic extraction."""
from .buffer_updater import (
    BondiWorldtubeH5BufferUpdater,
    KleinGordonWorldtubeH5BufferUpdater,
    MetricWorldtubeH5BufferUpdater,
    WorldtubeBufferUpdater,
    create_span_for_time_value,
    dataset_name_for_component,
    make_buffer_updater,
)
from .data_manager import WorldtubeDataManager
from .mode_recorder import WorldtubeModeRecorder, dataset_label_for_tag

__all__ = [
    "BondiWorldtubeH5BufferUpdater",
    "KleinGordonWorldtubeH5BufferUpdater",
    "MetricWorldtubeH5BufferUpdater",
    "WorldtubeBufferUpdater",
    "WorldtubeDataManager",
    "WorldtubeModeRecorder",
    "create_span_for_time_value",
    "dataset_label_for_tag",
    "dataset_name_for_component",
    "make_buffer_updater",
]
