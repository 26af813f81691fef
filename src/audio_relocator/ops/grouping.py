"""Cluster a batch's file entries into duplicate groups by name similarity."""

from __future__ import annotations

from loguru import logger

from ..models import FileEntry, SimilarityGroup
from ..similarity import SimilaritySettings

log = logger.bind(stage="grouping")


def _representative(members: list[FileEntry]) -> str:
    """Shortest sanitized name; min() keeps the earliest on ties."""
    return min(members, key=lambda e: len(e.sanitized_name)).sanitized_name


def _seed_groups(
    entries: list[FileEntry],
    settings: SimilaritySettings,
    terms: list[str] | None,
) -> list[list[FileEntry]]:
    """Single pass: each unassigned entry seeds a group of later entries
    that are directly similar to it. Not a transitive closure -- an entry
    similar only to a non-seed member starts its own group.
    """
    assigned = [False] * len(entries)
    clusters: list[list[FileEntry]] = []
    for i, seed in enumerate(entries):
        if assigned[i]:
            continue
        assigned[i] = True
        cluster = [seed]
        for j in range(i + 1, len(entries)):
            if assigned[j]:
                continue
            if settings.matches(seed.sanitized_name, entries[j].sanitized_name, terms):
                assigned[j] = True
                cluster.append(entries[j])
        clusters.append(cluster)
    return clusters


def _transitive_groups(
    entries: list[FileEntry],
    settings: SimilaritySettings,
    terms: list[str] | None,
) -> list[list[FileEntry]]:
    """Connected components of the pairwise similarity graph (union-find)."""
    parent = list(range(len(entries)))

    def find(x: int) -> int:
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    for i in range(len(entries)):
        for j in range(i + 1, len(entries)):
            if find(i) == find(j):
                continue
            if settings.matches(entries[i].sanitized_name, entries[j].sanitized_name, terms):
                # Lower index stays root so groups keep input order
                ri, rj = find(i), find(j)
                parent[max(ri, rj)] = min(ri, rj)

    by_root: dict[int, list[FileEntry]] = {}
    for i, entry in enumerate(entries):
        by_root.setdefault(find(i), []).append(entry)
    return list(by_root.values())


def group_entries(
    entries: list[FileEntry],
    enabled: bool,
    settings: SimilaritySettings,
    terms: list[str] | None = None,
    transitive: bool = False,
) -> list[SimilarityGroup]:
    """Group entries whose sanitized names are similar.

    With enabled=False every entry becomes its own group. Otherwise groups
    are seeded in input order (see _seed_groups), or built as full
    connected components when transitive=True.
    """
    if not enabled:
        return [SimilarityGroup(name=e.sanitized_name, members=[e]) for e in entries]

    if transitive:
        clusters = _transitive_groups(entries, settings, terms)
    else:
        clusters = _seed_groups(entries, settings, terms)

    groups = [SimilarityGroup(name=_representative(c), members=c) for c in clusters]
    multi = sum(1 for g in groups if g.is_multi)
    log.debug(
        f"Grouped {len(entries)} entries into {len(groups)} groups "
        f"({multi} with duplicates, mode={settings.mode}, threshold={settings.threshold:.2f})"
    )
    return groups
