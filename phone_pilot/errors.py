"""异常类型

循环内的错误按来源划分，Orchestrator 根据类型决定是降级、计入连续失败，还是直接结束任务。
"""


class PhonePilotError(Exception):
    """所有 phone_pilot 异常的基类"""


class PerceptionError(PhonePilotError):
    """没有任何后端能提供 UI 树或截图"""


class DecisionError(PhonePilotError):
    """网络、服务端或响应解析失败"""


class ToolValidationError(DecisionError):
    """工具名未知，或参数缺失/类型错误"""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name


class ExecutionError(PhonePilotError):
    """后端调用失败或后端不可用"""


class CapabilityError(ExecutionError):
    """当前没有任何可用的控制后端"""


class TaskError(PhonePilotError):
    """模型主动判定任务无法完成"""
