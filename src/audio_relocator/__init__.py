"""Audio Relocator -- move, rename, and deduplicate large audio collections.

Core modules:
    config        -- Run configuration via pydantic-settings (.env + env vars). CLI
                     flags are passed as kwargs to RelocatorConfig.
    cli           -- Click CLI entry point (audio-relocate). Runs the orchestrator on
                     a worker thread; Ctrl-C requests cooperative cancellation.
    orchestrator  -- Batch state machine: validate, optional backup, prepare, then
                     enumerate -> group -> rank -> move one batch at a time with a
                     memory reclaim point before each batch.
    scanner       -- Stack-based directory walk yielding size-bounded batches.
    sanitize      -- Filesystem-safe names, replacement/append terms.
    similarity    -- Word-based, exact, and graded (Levenshtein via rapidfuzz)
                     name similarity, plus the legacy 1-100 integer shim.
    quality       -- Format priority (lossless > lossy > unknown), bitrate, size.
    audit_log     -- LogEntry sinks (in-memory, JSONL) for the audit trail.
    ffprobe       -- Optional bitrate and tag probing via ffprobe subprocess.

Subpackages:
    ops -- File operations (duplicate grouping, conflict-resolved moves, backups)
"""
