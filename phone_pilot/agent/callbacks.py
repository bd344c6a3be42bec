"""Orchestrator 事件回调"""

from typing import List

from phone_pilot.types import AgentAction, AgentState, Step, Task


class AgentCallback:
    """所有回调默认什么都不做，按需覆盖；回调在执行循环所在线程中调用"""

    def on_state_changed(self, state: AgentState, task: Task) -> None:
        pass

    def on_step_started(self, step_number: int, action: AgentAction) -> None:
        pass

    def on_step_completed(self, step: Step) -> None:
        pass

    def on_progress(self, message: str) -> None:
        pass

    def on_task_completed(self, task: Task) -> None:
        pass

    def on_task_failed(self, task: Task) -> None:
        pass

    def on_question(self, question: str, suggestions: List[str]) -> None:
        pass
