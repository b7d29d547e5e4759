"""
Build orchestration: per-project build lanes, build strategies and
incremental build logs.
"""

from .log_buffer import BuildLog, LogRegistry
from .strategy import BuildArtifact, BuildContext, BuildStrategy, DockerfileStrategy
from .orchestrator import BuildOrchestrator, ProjectLane

__all__ = [
    "BuildLog",
    "LogRegistry",
    "BuildArtifact",
    "BuildContext",
    "BuildStrategy",
    "DockerfileStrategy",
    "BuildOrchestrator",
    "ProjectLane",
]
