"""
phone_pilot - LLM 驱动的 Android 手机助手

架构:
    AgentOrchestrator (agent/)
        -> PerceptionAdapter (perception/)   采集屏幕，得到 ScreenState
        -> DecisionClient (model/)           结合 ToolCatalog (tools/) 请求模型，得到 DecisionResult
        -> ActionDispatcher (dispatch/)      选择后端 (backends/) 执行动作，得到 ExecutionResult
    循环直到 finished / failed / ask_user，或达到步数、连续失败上限。

使用示例:
    from phone_pilot import load_settings
    from phone_pilot.run import build_orchestrator

    orchestrator = build_orchestrator(load_settings("config.yaml"))
    task = orchestrator.run_task("打开设置，查看 WLAN 列表")
    print(task.status, task.result)
"""

from phone_pilot.config import Settings, load_settings
from phone_pilot.types import AgentState, Task, TaskStatus

__version__ = "0.1.0"

__all__ = ["Settings", "load_settings", "AgentState", "Task", "TaskStatus"]
