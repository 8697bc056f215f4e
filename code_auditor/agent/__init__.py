"""Analysis agent: session controller and single-call executor."""
from .config import AgentConfig
from .controller import CodeAnalysisAgent, build_client, run_analysis
from .single_call import BatchResult, FileChunk, FileContent, SingleCallExecutor, chunk_file, read_files
from .state import AnalysisOutcome, AnalysisResult, SessionPhase, SessionState

__all__ = [
    "AgentConfig",
    "AnalysisOutcome",
    "AnalysisResult",
    "BatchResult",
    "CodeAnalysisAgent",
    "FileChunk",
    "FileContent",
    "SessionPhase",
    "SessionState",
    "SingleCallExecutor",
    "build_client",
    "chunk_file",
    "read_files",
    "run_analysis",
]
