"""
Services Module

Segment workflow services:
- entities: Workflow dataclasses and enums
- authorization / identity: Permission table and role resolution
- workflow: Segment lifecycle state machine
- autosave / scheduler: Debounced draft persistence
- review: Approve / deny pipeline
- export: Filtering and flat export formats
- ingestion / analytics: Batch creation and statistics
- persistence: Segment sinks
- factory: Wiring of the above around one store
"""
