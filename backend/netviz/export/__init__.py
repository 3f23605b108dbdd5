"""Snapshot export of the rendered graph."""

from .snapshot import MatplotlibSnapshotExporter, SnapshotConfig, SnapshotExporter, SnapshotSurface

__all__ = ["MatplotlibSnapshotExporter", "SnapshotConfig", "SnapshotExporter", "SnapshotSurface"]
