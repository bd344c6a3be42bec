"""感知适配器 - 从可用后端采集屏幕状态"""

import io
import logging
import time
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from phone_pilot.backends.base import RawScreen
from phone_pilot.backends.registry import BackendRegistry
from phone_pilot.errors import ExecutionError, PerceptionError
from phone_pilot.perception.parser import parse_nodes, parse_ui_xml
from phone_pilot.types import ScreenState

logger = logging.getLogger(__name__)


def image_size(data: bytes) -> Optional[Tuple[int, int]]:
    """读取图片尺寸，只解析文件头"""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError):
        return None


class PerceptionAdapter:
    """
    按权限从低到高询问可读屏的后端，把原始数据归一化为 ScreenState

    第一个后端缺少 UI 树或截图时，后面的后端可以补齐缺失部分。
    """

    def __init__(self, registry: BackendRegistry, include_screenshot: bool = True):
        self.registry = registry
        self.include_screenshot = include_screenshot

    def capture(self) -> ScreenState:
        merged = RawScreen()
        sources = []

        for backend in self.registry.readers():
            need_screenshot = self.include_screenshot and not merged.screenshot
            if merged.has_tree and not need_screenshot:
                break
            try:
                raw = backend.read_screen(include_screenshot=need_screenshot)
            except (ExecutionError, OSError) as e:
                logger.warning("后端 %s 读屏失败: %s", backend.name, e)
                continue
            if raw.is_empty:
                continue

            sources.append(backend.name)
            if not merged.has_tree and raw.has_tree:
                merged.ui_xml, merged.nodes = raw.ui_xml, raw.nodes
            if not merged.screenshot and raw.screenshot:
                merged.screenshot = raw.screenshot
            if not merged.package and raw.package:
                merged.package, merged.activity = raw.package, raw.activity

        if merged.is_empty:
            raise PerceptionError("没有后端能提供 UI 树或截图")

        if merged.ui_xml:
            elements = parse_ui_xml(merged.ui_xml)
        elif merged.nodes is not None:
            elements = parse_nodes(merged.nodes)
        else:
            elements = []

        screen_size = image_size(merged.screenshot) if merged.screenshot else None

        state = ScreenState(
            package_name=merged.package,
            activity_name=merged.activity,
            elements=tuple(elements),
            screenshot=merged.screenshot,
            screen_size=screen_size,
            captured_at=time.time(),
            source="+".join(sources),
        )
        logger.debug("采集屏幕: %s (来源 %s)", state.summary(), state.source)
        return state
