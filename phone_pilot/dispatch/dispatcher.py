"""动作派发器 - 将 AgentAction 转换为后端原语调用"""

import logging
import time
from typing import Callable, Optional, Tuple

from phone_pilot.backends.base import KEY_CODES, CapabilityBackend, TextPayload
from phone_pilot.backends.registry import BackendRegistry
from phone_pilot.dispatch.apps import AppResolver, MappingAppResolver
from phone_pilot.errors import ExecutionError
from phone_pilot.types import (
    TERMINAL_ACTIONS,
    AgentAction,
    ClearText,
    CloseApp,
    DescribeScreen,
    DoubleTap,
    ExecutionResult,
    InputText,
    LongPress,
    OpenApp,
    PressKey,
    Scroll,
    Swipe,
    Tap,
    Wait,
)

logger = logging.getLogger(__name__)

DEFAULT_SCREEN_SIZE = (1080, 1920)
DOUBLE_TAP_INTERVAL = 0.1
SCROLL_DURATION_MS = 300


class ActionDispatcher:
    """
    动作派发器

    每次调用只选择一次后端（权限最低、当前可用、支持该动作），失败时不换后端重试；
    换一种做法交给下一轮决策。

    Args:
        app_resolver: 应用名解析器
        sleep: 等待函数，测试中可替换
    """

    def __init__(
        self,
        app_resolver: Optional[AppResolver] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.app_resolver = app_resolver or MappingAppResolver()
        self._sleep = sleep

    def execute(self, action: AgentAction, backends: BackendRegistry) -> ExecutionResult:
        """
        执行动作

        Args:
            action: 要执行的动作，不能是 finished / failed / ask_user / describe_screen
            backends: 后端注册表

        Returns:
            执行结果；后端失败、无可用后端、应用名无法解析都返回失败结果
        """
        if isinstance(action, TERMINAL_ACTIONS) or isinstance(action, DescribeScreen):
            raise ValueError(f"{action.kind.value} 不能派发到后端")

        if isinstance(action, Wait):
            self._sleep(max(0, action.duration_ms) / 1000.0)
            return ExecutionResult.ok(f"等待 {action.duration_ms}ms")

        backend = backends.select(action)
        if backend is None:
            logger.warning("没有可执行 %s 的后端", action.kind.value)
            return ExecutionResult.fail(f"没有可用的后端执行 {action.kind.value}")

        try:
            message = self._perform(action, backend)
        except ExecutionError as e:
            logger.warning("后端 %s 执行 %s 失败: %s", backend.name, action.kind.value, e)
            return ExecutionResult.fail(str(e))

        logger.debug("后端 %s 执行 %s: %s", backend.name, action.kind.value, message)
        return ExecutionResult.ok(message)

    def _perform(self, action: AgentAction, backend: CapabilityBackend) -> str:
        if isinstance(action, Tap):
            return backend.tap(action.x, action.y)

        elif isinstance(action, DoubleTap):
            backend.tap(action.x, action.y)
            self._sleep(DOUBLE_TAP_INTERVAL)
            backend.tap(action.x, action.y)
            return f"双击 ({action.x}, {action.y})"

        elif isinstance(action, LongPress):
            # 长按通过原地滑动实现
            backend.swipe(action.x, action.y, action.x, action.y, action.duration_ms)
            return f"长按 ({action.x}, {action.y}) {action.duration_ms}ms"

        elif isinstance(action, Swipe):
            return backend.swipe(
                action.start_x, action.start_y, action.end_x, action.end_y, action.duration_ms
            )

        elif isinstance(action, Scroll):
            start, end = self.scroll_vector(action, backend.screen_size() or DEFAULT_SCREEN_SIZE)
            backend.swipe(start[0], start[1], end[0], end[1], SCROLL_DURATION_MS)
            return f"滚动 {action.direction} {action.distance}%"

        elif isinstance(action, InputText):
            return backend.input_text(TextPayload(action.text))

        elif isinstance(action, ClearText):
            return backend.clear_text()

        elif isinstance(action, PressKey):
            code = KEY_CODES.get(action.key)
            if code is None:
                raise ExecutionError(f"未知按键: {action.key}")
            return backend.press_key(code)

        elif isinstance(action, OpenApp):
            package = self._resolve(action.app)
            return backend.launch(package)

        elif isinstance(action, CloseApp):
            package = self._resolve(action.app)
            return backend.force_stop(package)

        raise TypeError(f"未知动作类型: {type(action).__name__}")

    def _resolve(self, app: str) -> str:
        package = self.app_resolver.resolve(app)
        if not package:
            raise ExecutionError(f"找不到应用: {app}")
        return package

    @staticmethod
    def scroll_vector(action: Scroll, screen_size: Tuple[int, int]) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        """以屏幕中心为中点计算滚动手势的起点和终点"""
        width, height = screen_size
        cx, cy = width // 2, height // 2
        ratio = max(1, min(100, action.distance)) / 100.0

        if action.direction in ("up", "down"):
            half = int(height * ratio) // 2
            # up: 手指从下往上滑
            sign = 1 if action.direction == "up" else -1
            start = (cx, cy + sign * half)
            end = (cx, cy - sign * half)
        elif action.direction in ("left", "right"):
            half = int(width * ratio) // 2
            sign = 1 if action.direction == "left" else -1
            start = (cx + sign * half, cy)
            end = (cx - sign * half, cy)
        else:
            raise ExecutionError(f"未知滚动方向: {action.direction}")

        def clamp(point: Tuple[int, int]) -> Tuple[int, int]:
            return max(0, min(point[0], width - 1)), max(0, min(point[1], height - 1))

        return clamp(start), clamp(end)
