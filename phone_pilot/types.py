"""核心类型定义

屏幕快照、动作、决策结果和执行步骤都是不可变值；只有 Task 由 Orchestrator 独占并原地更新。
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union


class TaskStatus(str, Enum):
    """任务状态"""
    PENDING = "pending"
    ANALYZING = "analyzing"
    PLANNING = "planning"
    EXECUTING = "executing"
    WAITING_USER = "waiting_user"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class AgentState(str, Enum):
    """Orchestrator 状态机状态"""
    IDLE = "idle"
    ANALYZING = "analyzing"
    PLANNING = "planning"
    EXECUTING = "executing"
    WAITING_USER = "waiting_user"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Bounds:
    left: int
    top: int
    right: int
    bottom: int

    def __post_init__(self):
        if self.right < self.left or self.bottom < self.top:
            raise ValueError(
                f"非法边界 [{self.left},{self.top}][{self.right},{self.bottom}]"
            )

    @property
    def center(self) -> Tuple[int, int]:
        return (self.left + self.right) // 2, (self.top + self.bottom) // 2

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top


@dataclass(frozen=True)
class UiElement:
    """UI 元素，由 Perception Adapter 从 UI 树归一化得到"""
    id: str
    kind: str
    text: str
    description: str
    bounds: Bounds
    clickable: bool = False
    editable: bool = False
    scrollable: bool = False
    focused: bool = False

    @property
    def center(self) -> Tuple[int, int]:
        return self.bounds.center

    @property
    def label(self) -> str:
        return self.text or self.description

    def to_description(self) -> str:
        """生成元素描述，用于 LLM 理解"""
        cx, cy = self.center
        parts = [f"[{self.id}]"]
        if self.text:
            parts.append(f'"{self.text}"')
        if self.description and self.description != self.text:
            parts.append(f"(desc:{self.description})")
        if self.kind:
            parts.append(self.kind)
        parts.append(f"({cx},{cy})")

        attrs = []
        if self.clickable:
            attrs.append("clickable")
        if self.editable:
            attrs.append("editable")
        if self.scrollable:
            attrs.append("scrollable")
        if self.focused:
            attrs.append("focused")
        if attrs:
            parts.append(f"[{','.join(attrs)}]")

        return " ".join(parts)


@dataclass(frozen=True)
class ScreenState:
    """屏幕快照，每轮循环重新采集，创建后不再修改"""
    package_name: str
    activity_name: Optional[str] = None
    elements: Tuple[UiElement, ...] = ()
    screenshot: Optional[bytes] = field(default=None, repr=False)
    screen_size: Optional[Tuple[int, int]] = None
    captured_at: float = field(default_factory=time.time)
    source: str = ""

    @classmethod
    def empty(cls, source: str = "degraded") -> "ScreenState":
        """感知失败时使用的降级快照"""
        return cls(package_name="", source=source)

    @property
    def has_screenshot(self) -> bool:
        return bool(self.screenshot)

    def find_by_text(self, text: str) -> List[UiElement]:
        needle = text.lower()
        return [
            e for e in self.elements
            if needle in e.text.lower() or needle in e.description.lower()
        ]

    def summary(self) -> str:
        """单行摘要，写入 Step.screen_before"""
        app = self.package_name or "未知应用"
        if self.activity_name:
            app = f"{app}/{self.activity_name.split('.')[-1]}"
        return f"{app}，{len(self.elements)} 个元素"


class ActionKind(str, Enum):
    """动作类型，值即工具名"""
    TAP = "tap"
    LONG_PRESS = "long_press"
    DOUBLE_TAP = "double_tap"
    SWIPE = "swipe"
    SCROLL = "scroll"
    INPUT_TEXT = "input_text"
    CLEAR_TEXT = "clear_text"
    PRESS_KEY = "press_key"
    OPEN_APP = "open_app"
    CLOSE_APP = "close_app"
    DESCRIBE_SCREEN = "describe_screen"
    WAIT = "wait"
    FINISHED = "finished"
    FAILED = "failed"
    ASK_USER = "ask_user"


# 每个变体只携带自己需要的字段；description 是模型给出的一句话意图，只用于日志和历史


@dataclass(frozen=True)
class Tap:
    x: int
    y: int
    description: str = ""
    kind = ActionKind.TAP


@dataclass(frozen=True)
class LongPress:
    x: int
    y: int
    duration_ms: int = 800
    description: str = ""
    kind = ActionKind.LONG_PRESS


@dataclass(frozen=True)
class DoubleTap:
    x: int
    y: int
    description: str = ""
    kind = ActionKind.DOUBLE_TAP


@dataclass(frozen=True)
class Swipe:
    start_x: int
    start_y: int
    end_x: int
    end_y: int
    duration_ms: int = 300
    description: str = ""
    kind = ActionKind.SWIPE


@dataclass(frozen=True)
class Scroll:
    direction: str  # up / down / left / right
    distance: int = 50  # 屏幕百分比
    description: str = ""
    kind = ActionKind.SCROLL


@dataclass(frozen=True)
class InputText:
    text: str
    description: str = ""
    kind = ActionKind.INPUT_TEXT


@dataclass(frozen=True)
class ClearText:
    description: str = ""
    kind = ActionKind.CLEAR_TEXT


@dataclass(frozen=True)
class PressKey:
    key: str
    description: str = ""
    kind = ActionKind.PRESS_KEY


@dataclass(frozen=True)
class OpenApp:
    app: str
    description: str = ""
    kind = ActionKind.OPEN_APP


@dataclass(frozen=True)
class CloseApp:
    app: str
    description: str = ""
    kind = ActionKind.CLOSE_APP


@dataclass(frozen=True)
class DescribeScreen:
    focus: str = ""
    description: str = ""
    kind = ActionKind.DESCRIBE_SCREEN


@dataclass(frozen=True)
class Wait:
    duration_ms: int = 2000
    description: str = ""
    kind = ActionKind.WAIT


@dataclass(frozen=True)
class Finished:
    message: str
    kind = ActionKind.FINISHED


@dataclass(frozen=True)
class Failed:
    message: str
    kind = ActionKind.FAILED


@dataclass(frozen=True)
class AskUser:
    question: str
    options: Tuple[str, ...] = ()
    kind = ActionKind.ASK_USER


AgentAction = Union[
    Tap, LongPress, DoubleTap, Swipe, Scroll, InputText, ClearText, PressKey,
    OpenApp, CloseApp, DescribeScreen, Wait, Finished, Failed, AskUser,
]

TERMINAL_ACTIONS = (Finished, Failed, AskUser)


def describe_action(action: AgentAction) -> str:
    """动作的人类可读描述，用于历史和日志"""
    intent = getattr(action, "description", "")
    if isinstance(action, (Tap, DoubleTap)):
        detail = f"{action.kind.value}({action.x}, {action.y})"
    elif isinstance(action, LongPress):
        detail = f"long_press({action.x}, {action.y}, {action.duration_ms}ms)"
    elif isinstance(action, Swipe):
        detail = (
            f"swipe({action.start_x}, {action.start_y} -> "
            f"{action.end_x}, {action.end_y})"
        )
    elif isinstance(action, Scroll):
        detail = f"scroll({action.direction}, {action.distance}%)"
    elif isinstance(action, InputText):
        detail = f'input_text("{action.text}")'
    elif isinstance(action, ClearText):
        detail = "clear_text()"
    elif isinstance(action, PressKey):
        detail = f"press_key({action.key})"
    elif isinstance(action, (OpenApp, CloseApp)):
        detail = f"{action.kind.value}({action.app})"
    elif isinstance(action, DescribeScreen):
        detail = f"describe_screen({action.focus})" if action.focus else "describe_screen()"
    elif isinstance(action, Wait):
        detail = f"wait({action.duration_ms}ms)"
    elif isinstance(action, (Finished, Failed)):
        detail = f"{action.kind.value}: {action.message}"
    elif isinstance(action, AskUser):
        detail = f"ask_user: {action.question}"
    else:
        raise TypeError(f"未知动作类型: {type(action).__name__}")

    return f"{detail} - {intent}" if intent else detail


@dataclass(frozen=True)
class ActionDecision:
    action: AgentAction
    reasoning: Optional[str] = None


@dataclass(frozen=True)
class TextDecision:
    text: str
    reasoning: Optional[str] = None


@dataclass(frozen=True)
class EmptyDecision:
    reasoning: Optional[str] = None


@dataclass(frozen=True)
class ErrorDecision:
    message: str


DecisionResult = Union[ActionDecision, TextDecision, EmptyDecision, ErrorDecision]


@dataclass(frozen=True)
class ExecutionResult:
    """单次动作执行结果"""
    success: bool
    message: str = ""
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, message: str = "") -> "ExecutionResult":
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, error_message: str, message: str = "") -> "ExecutionResult":
        return cls(success=False, message=message, error_message=error_message)


@dataclass(frozen=True)
class Step:
    """执行历史中的一步，追加后不再修改"""
    number: int
    screen_before: str
    action: AgentAction
    success: bool
    message: str = ""
    error_message: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_history_line(self) -> str:
        status = "成功" if self.success else "失败"
        line = f"步骤{self.number}: {describe_action(self.action)} -> {status}"
        if self.error_message:
            line += f" ({self.error_message})"
        elif self.message:
            line += f" ({self.message[:80]})"
        return line


@dataclass
class Task:
    """用户任务，由 Orchestrator 独占"""
    user_input: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    status: TaskStatus = TaskStatus.PENDING
    step_count: int = 0
    history: List[Step] = field(default_factory=list)
    result: Optional[str] = None
    question: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    def add_step(self, step: Step) -> None:
        self.history.append(step)
        self.step_count = len(self.history)

    @property
    def elapsed_seconds(self) -> float:
        end = self.finished_at or time.time()
        return end - self.started_at
