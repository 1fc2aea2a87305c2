"""Update synchronization engine.

Key Components:
    - GroupingEngine: Partitions updates into pull request groups
    - SyncEngine: Per-group pull request state machine
    - BranchLifecycleManager: Orphaned branch cleanup
    - PassOrchestrator: One scan, sync and cleanup pass

Outcome Types (``depsync.engine.types``):
    - SyncOutcome, CommitResult, MergeResult
    - DetectionResult, CleanupReport, ScanResult
"""
