"""控制后端接口

每个后端提供“读屏”和“执行动作”两类原语，并带有一个权限等级。
Dispatcher 在每次调用前查询 is_available()，选择权限最低且支持该动作的后端。
"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import FrozenSet, List, Optional, Tuple

from phone_pilot.types import (
    ActionKind,
    AgentAction,
    PressKey,
)


class Privilege(IntEnum):
    """权限等级，数值越小权限越低"""
    ACCESSIBILITY = 10
    SHELL = 20
    ROOT = 30


class Capability(str, Enum):
    READ_SCREEN = "read_screen"
    SCREENSHOT = "screenshot"
    GESTURE = "gesture"  # tap / swipe
    TEXT = "text"  # input_text / clear_text
    KEY = "key"
    APP_LIFECYCLE = "app_lifecycle"  # launch / force_stop


ACTION_CAPABILITIES = {
    ActionKind.TAP: Capability.GESTURE,
    ActionKind.LONG_PRESS: Capability.GESTURE,
    ActionKind.DOUBLE_TAP: Capability.GESTURE,
    ActionKind.SWIPE: Capability.GESTURE,
    ActionKind.SCROLL: Capability.GESTURE,
    ActionKind.INPUT_TEXT: Capability.TEXT,
    ActionKind.CLEAR_TEXT: Capability.TEXT,
    ActionKind.PRESS_KEY: Capability.KEY,
    ActionKind.OPEN_APP: Capability.APP_LIFECYCLE,
    ActionKind.CLOSE_APP: Capability.APP_LIFECYCLE,
}

# Android KeyEvent 键值
KEY_CODES = {
    "back": 4,
    "home": 3,
    "recent": 187,
    "enter": 66,
    "delete": 67,
    "tab": 61,
    "space": 62,
    "power": 26,
    "volume_up": 24,
    "volume_down": 25,
}


@dataclass(frozen=True)
class TextPayload:
    """结构化文本载荷，后端自行决定如何传输，调用方不做任何转义"""
    text: str

    def to_base64(self) -> str:
        return base64.b64encode(self.text.encode("utf-8")).decode("ascii")


@dataclass
class RawScreen:
    """后端返回的原始屏幕数据，任意一项都可能缺失"""
    ui_xml: Optional[str] = None
    nodes: Optional[List[dict]] = None
    screenshot: Optional[bytes] = field(default=None, repr=False)
    package: str = ""
    activity: Optional[str] = None

    @property
    def has_tree(self) -> bool:
        return bool(self.ui_xml) or self.nodes is not None

    @property
    def is_empty(self) -> bool:
        return not self.has_tree and not self.screenshot


class CapabilityBackend(ABC):
    """设备控制后端基类

    所有原语在失败时抛出 ExecutionError，成功时返回简短说明。
    """

    name: str = "backend"
    privilege: Privilege = Privilege.SHELL
    capabilities: FrozenSet[Capability] = frozenset()
    supported_keys: Optional[FrozenSet[str]] = None  # None 表示支持所有 KEY_CODES

    @abstractmethod
    def is_available(self) -> bool:
        """后端当前是否可用；每次派发前都会重新查询"""

    def supports(self, action: AgentAction) -> bool:
        capability = ACTION_CAPABILITIES.get(action.kind)
        if capability is None or capability not in self.capabilities:
            return False
        if isinstance(action, PressKey) and self.supported_keys is not None:
            return action.key in self.supported_keys
        return True

    def can_read_screen(self) -> bool:
        return bool({Capability.READ_SCREEN, Capability.SCREENSHOT} & self.capabilities)

    # ---- 读屏 ----

    def read_screen(self, include_screenshot: bool = True) -> RawScreen:
        raise NotImplementedError(f"{self.name} 不支持读屏")

    def screen_size(self) -> Optional[Tuple[int, int]]:
        return None

    # ---- 动作原语 ----

    def tap(self, x: int, y: int) -> str:
        raise NotImplementedError

    def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int) -> str:
        raise NotImplementedError

    def input_text(self, payload: TextPayload) -> str:
        raise NotImplementedError

    def clear_text(self) -> str:
        raise NotImplementedError

    def press_key(self, code: int) -> str:
        raise NotImplementedError

    def launch(self, identifier: str) -> str:
        raise NotImplementedError

    def force_stop(self, identifier: str) -> str:
        raise NotImplementedError

    def release(self) -> None:
        """释放后端持有的资源"""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} privilege={self.privilege.name}>"
