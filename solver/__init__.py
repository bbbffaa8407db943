"""Solver-Modul: Verteilung zulässiger Slots und Platzierungs-Pipeline."""

from .session_distributor import SessionDistributor, choose_strategy, optimize_distribution
from .placement import BatchPlacement, PlacementPlanner, StudentPlacement

__all__ = [
    "SessionDistributor",
    "choose_strategy",
    "optimize_distribution",
    "PlacementPlanner",
    "StudentPlacement",
    "BatchPlacement",
]
