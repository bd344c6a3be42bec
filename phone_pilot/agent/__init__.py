from phone_pilot.agent.analyzer import TaskAnalysis, TaskAnalyzer
from phone_pilot.agent.callbacks import AgentCallback
from phone_pilot.agent.orchestrator import AgentOrchestrator
from phone_pilot.agent.trace import TraceLogger

__all__ = ["TaskAnalysis", "TaskAnalyzer", "AgentCallback", "AgentOrchestrator", "TraceLogger"]
