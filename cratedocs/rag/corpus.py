"""Selection of the documentation files that represent a crate.

rustdoc writes the same item page at every module path it is re-exported
from. By default only one page per duplicated file name is kept (the largest),
and pages whose file name occurs once are not indexed at all. ``include_all``
selects every candidate page instead.
"""
from collections import defaultdict
from pathlib import Path
from typing import Dict, List

import structlog

logger = structlog.get_logger()

LANDING_PAGE = "index.html"


def crate_docs_dir(docs_path: Path, crate_name: str) -> Path:
    """Return the directory holding one crate's generated HTML."""
    return Path(docs_path) / crate_name


def discover_candidate_files(crate_dir: Path) -> List[str]:
    """List HTML files under a crate directory, landing pages excluded.

    Returns:
        Relative POSIX paths, sorted

    Raises:
        FileNotFoundError: If the crate directory doesn't exist
    """
    if not crate_dir.is_dir():
        raise FileNotFoundError(f"Crate documentation directory not found: {crate_dir}")

    return sorted(
        path.relative_to(crate_dir).as_posix()
        for path in crate_dir.rglob("*.html")
        if path.is_file() and path.name != LANDING_PAGE
    )


def group_by_file_name(candidates: List[str]) -> Dict[str, List[str]]:
    """Group relative paths by their final path segment."""
    groups: Dict[str, List[str]] = defaultdict(list)
    for rel_path in candidates:
        groups[rel_path.rsplit("/", 1)[-1]].append(rel_path)
    return dict(groups)


def pick_largest(crate_dir: Path, paths: List[str]) -> str:
    """Pick the largest file of a group; ties go to the smallest path."""
    best = None
    best_size = -1
    for rel_path in sorted(paths):
        size = (crate_dir / rel_path).stat().st_size
        if size > best_size:
            best, best_size = rel_path, size
    return best


def select_crate_files(
    docs_path: Path, crate_name: str, include_all: bool = False
) -> List[str]:
    """Decide which files make up the crate's indexable corpus.

    Args:
        docs_path: Documentation root containing one directory per crate
        crate_name: Crate whose directory is scanned
        include_all: Select every candidate instead of deduplicating

    Returns:
        Sorted POSIX paths relative to ``<docs_path>/<crate_name>``
    """
    crate_dir = crate_docs_dir(docs_path, crate_name)
    candidates = discover_candidate_files(crate_dir)

    logger.info(
        "corpus_candidates_discovered",
        crate=crate_name,
        count=len(candidates),
        crate_dir=str(crate_dir),
    )

    if include_all:
        logger.info("corpus_files_selected", crate=crate_name, mode="all", count=len(candidates))
        return candidates

    selected = sorted(
        pick_largest(crate_dir, paths)
        for paths in group_by_file_name(candidates).values()
        if len(paths) > 1
    )

    logger.info(
        "corpus_files_selected",
        crate=crate_name,
        mode="deduplicated",
        count=len(selected),
        skipped=len(candidates) - len(selected),
    )

    return selected
