"""
Interactive terminals into running deployments.
"""

from .process import ShellProcess, DockerExecProcess
from .bridge import (
    TerminalBridge,
    TerminalSession,
    OutputChunk,
    get_terminal_bridge,
    CLOSE_NORMAL,
    CLOSE_DEPLOYMENT_REPLACED,
    CLOSE_PROCESS_EXITED,
    CLOSE_FORBIDDEN,
    CLOSE_NO_DEPLOYMENT,
)

__all__ = [
    "ShellProcess",
    "DockerExecProcess",
    "TerminalBridge",
    "TerminalSession",
    "OutputChunk",
    "get_terminal_bridge",
    "CLOSE_NORMAL",
    "CLOSE_DEPLOYMENT_REPLACED",
    "CLOSE_PROCESS_EXITED",
    "CLOSE_FORBIDDEN",
    "CLOSE_NO_DEPLOYMENT",
]
