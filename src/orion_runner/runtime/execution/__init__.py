from .coordinator import ExecutionCoordinator
from .phase_runner import ExecutionRun, PhaseRunner, RunSummary
from .retry import RetryPolicy
from .task_executor import AgentLeases, TaskExecutor, TaskOutcome

__all__ = [
    "AgentLeases",
    "ExecutionCoordinator",
    "ExecutionRun",
    "PhaseRunner",
    "RetryPolicy",
    "RunSummary",
    "TaskExecutor",
    "TaskOutcome",
]
