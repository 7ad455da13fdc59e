from __future__ import annotations

from typing import Optional

from pathmon.models import MetricSnapshot

# Latency at or above this maps to pure red.
LATENCY_CEILING_MS = 200.0
GREEN_HUE = 0.33


def latency_hue(ms: Optional[float]) -> float:
    """Hue in [0, 0.33]: green for fast, sliding to red at the ceiling."""
    if ms is None:
        return 0.0
    ratio = min(1.0, max(0.0, ms) / LATENCY_CEILING_MS)
    return (1.0 - ratio) * GREEN_HUE


def latency_grade(ms: Optional[float]) -> str:
    if ms is None:
        return "down"
    if ms < 50:
        return "good"
    if ms < 150:
        return "fair"
    return "poor"


def loss_grade(loss_percentage: float) -> str:
    if loss_percentage <= 0:
        return "good"
    if loss_percentage < 5:
        return "fair"
    return "poor"


def display_latency(metric: MetricSnapshot) -> Optional[float]:
    """The value to colour by: smoothed when available, else the newest sample."""
    if metric.recent_weighted_average is not None:
        return metric.recent_weighted_average
    return metric.latest_ms


def format_latency(ms: Optional[float]) -> str:
    if ms is None:
        return "---"
    if ms >= 1000:
        return f"{ms / 1000:.1f}s"
    return f"{int(round(ms))}ms"


def format_jitter(jitter: Optional[float]) -> Optional[str]:
    if jitter is None:
        return None
    return f"±{int(round(jitter))}ms"


def summarize(metric: MetricSnapshot) -> str:
    if not metric.enabled:
        return f"{metric.name} disabled"
    parts = [metric.name, format_latency(metric.latest_ms)]
    jitter = format_jitter(metric.jitter)
    if jitter:
        parts.append(jitter)
    parts.append(f"{metric.loss_percentage:.1f}%")
    parts.append(latency_grade(display_latency(metric)))
    return " ".join(parts)
