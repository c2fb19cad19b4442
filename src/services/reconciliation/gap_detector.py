"""
Gap Detector - missing ids in an expected dense id range.

Single linear pass over 1..N with set membership; contiguous missing ids
are folded into ranges on the fly.
"""

from typing import Iterable, List

from loguru import logger

from src.services.reconciliation.schemas import GapReport


def format_range(start: int, end: int) -> str:
    """Render one missing run: '#7' for a single id, '3-9' for a span."""
    if start == end:
        return f"#{start}"
    return f"{start}-{end}"


def expand_range(label: str) -> List[int]:
    """Inverse of format_range."""
    if label.startswith("#"):
        return [int(label[1:])]
    start, end = label.split("-")
    return list(range(int(start), int(end) + 1))


def detect_gaps(existing_ids: Iterable[int], upper_bound: int) -> GapReport:
    """
    Compare existing ids against the dense range [1, upper_bound]

    Args:
        existing_ids: Ids present in the cache (any order, duplicates ignored)
        upper_bound: Inclusive upper bound N

    Returns:
        GapReport with missing ids, compressed ranges and completion percentage

    Raises:
        ValueError: if upper_bound is negative
    """
    if upper_bound < 0:
        raise ValueError(f"upper_bound must be >= 0, got {upper_bound}")

    existing = set(existing_ids)
    in_range = {token_id for token_id in existing if 1 <= token_id <= upper_bound}

    missing: List[int] = []
    ranges: List[str] = []
    run_start = run_end = None

    for token_id in range(1, upper_bound + 1):
        if token_id in in_range:
            continue
        missing.append(token_id)
        if run_end is not None and token_id == run_end + 1:
            run_end = token_id
            continue
        if run_start is not None:
            ranges.append(format_range(run_start, run_end))
        run_start = run_end = token_id

    if run_start is not None:
        ranges.append(format_range(run_start, run_end))

    existing_count = len(in_range)
    percent = round(existing_count / upper_bound * 100, 2) if upper_bound else 100.0

    report = GapReport(
        total_checked=upper_bound,
        existing_count=existing_count,
        missing_count=len(missing),
        missing_ids=missing,
        missing_ranges=ranges,
        first_missing=missing[0] if missing else None,
        percent_complete=percent,
        out_of_range_count=len(existing) - existing_count,
    )

    logger.info(
        f"Gap check #1-#{upper_bound}: {existing_count} present, "
        f"{report.missing_count} missing ({percent}% complete)"
    )
    if ranges:
        logger.debug(f"Missing ranges: {', '.join(ranges)}")

    return report
