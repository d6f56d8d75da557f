"""Compression score tiers and size formatting."""

from __future__ import annotations

import math

from models import CompressionScore, Severity

# (lower bound inclusive, tier, label), checked top-down.
SCORE_TIERS = (
    (97.0, 5.0, "Incredible"),
    (93.0, 4.5, "Outstanding"),
    (88.0, 4.0, "Excellent"),
    (80.0, 3.5, "Great"),
    (70.0, 3.0, "Good"),
    (55.0, 2.5, "Decent"),
    (40.0, 2.0, "Moderate"),
    (25.0, 1.5, "Some savings"),
    (10.0, 1.0, "Minimal"),
)
LOWEST_TIER = (0.5, "Very low")


def severity_for(tier: float) -> Severity:
    if tier >= 4.0:
        return Severity.EXCELLENT
    if tier >= 3.0:
        return Severity.GOOD
    if tier >= 2.0:
        return Severity.FAIR
    return Severity.POOR


def score(ratio_percent: float) -> CompressionScore:
    """Map a size reduction percentage to one of ten half-star tiers."""
    tier, label = LOWEST_TIER
    if not math.isnan(ratio_percent):
        for lower, candidate, name in SCORE_TIERS:
            if ratio_percent >= lower:
                tier, label = candidate, name
                break
    return CompressionScore(tier=tier, label=label, severity=severity_for(tier))


def compression_ratio(original_size: int, compressed_size: int) -> float:
    if original_size <= 0:
        return 0.0
    return round((1 - compressed_size / original_size) * 100, 1)


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.2f} MB"
