"""File operations for the audio relocator.

Submodules:
    grouping -- Clusters a batch into SimilarityGroups. Default is single-pass
                seed clustering (a candidate joins only if similar to the group's
                seed); transitive=True builds connected components with
                union-find instead. Group name is the shortest sanitized name.
    move     -- ConflictPolicy variants (overwrite, skip, keep_both, prompt_via)
                and MoveResolver: folder/file collision handling
                ("_duplicate<N>" folders, "_<N>" files), bounded path
                shortening, locked-source detection, moves with retry. Records
                exactly one audit LogEntry per relocated file.
    backup   -- Buffered chunked copy of matching source files into the backup
                directory before any move.
"""
