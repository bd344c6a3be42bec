"""UI 树解析

把 uiautomator XML 或无障碍节点列表归一化成 UiElement 列表。
元素编号 elem_N 按遍历顺序分配，只在单个快照内有效。
"""

import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, Iterable, List, Optional

from phone_pilot.types import Bounds, UiElement

BOUNDS_PATTERN = re.compile(r"\[(-?\d+),(-?\d+)\]\[(-?\d+),(-?\d+)\]")

EDITABLE_CLASSES = ("EditText", "AutoCompleteTextView", "SearchView")


def parse_bounds(value: Any) -> Optional[Bounds]:
    """解析 "[l,t][r,b]" 字符串、列表或字典形式的边界，非法或零面积返回 None"""
    coords = None
    if isinstance(value, str):
        match = BOUNDS_PATTERN.search(value)
        if match:
            coords = [int(g) for g in match.groups()]
    elif isinstance(value, (list, tuple)) and len(value) == 4:
        coords = [int(v) for v in value]
    elif isinstance(value, dict):
        try:
            coords = [int(value[k]) for k in ("left", "top", "right", "bottom")]
        except (KeyError, TypeError, ValueError):
            coords = None

    if coords is None:
        return None
    left, top, right, bottom = coords
    if right <= left or bottom <= top:
        return None
    return Bounds(left, top, right, bottom)


def _short_class(class_name: str) -> str:
    return class_name.rsplit(".", 1)[-1] if class_name else ""


def _is_editable(class_name: str, flag: bool) -> bool:
    return flag or any(c in class_name for c in EDITABLE_CLASSES)


class _Collector:
    """按遍历顺序收集元素并分配编号"""

    def __init__(self):
        self.elements: List[UiElement] = []

    def add(
        self,
        class_name: str,
        text: str,
        description: str,
        bounds: Optional[Bounds],
        clickable: bool,
        editable: bool,
        scrollable: bool,
        focused: bool,
    ) -> None:
        if bounds is None:
            return
        text = (text or "").strip()
        description = (description or "").strip()
        if not (text or description or clickable or editable or scrollable):
            return
        self.elements.append(UiElement(
            id=f"elem_{len(self.elements)}",
            kind=_short_class(class_name),
            text=text,
            description=description,
            bounds=bounds,
            clickable=clickable,
            editable=editable,
            scrollable=scrollable,
            focused=focused,
        ))


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


def parse_ui_xml(xml_text: str) -> List[UiElement]:
    """解析 uiautomator dump 的 XML，解析失败返回空列表"""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError:
        return []

    collector = _Collector()
    for node in root.iter("node"):
        attrs = node.attrib
        class_name = attrs.get("class", "")
        collector.add(
            class_name=class_name,
            text=attrs.get("text", ""),
            description=attrs.get("content-desc", ""),
            bounds=parse_bounds(attrs.get("bounds", "")),
            clickable=_flag(attrs.get("clickable")) or _flag(attrs.get("long-clickable")),
            editable=_is_editable(class_name, False),
            scrollable=_flag(attrs.get("scrollable")),
            focused=_flag(attrs.get("focused")),
        )
    return collector.elements


def _walk(nodes: Iterable[Dict[str, Any]]):
    for node in nodes:
        if not isinstance(node, dict):
            continue
        yield node
        yield from _walk(node.get("children") or [])


def parse_nodes(nodes: Iterable[Dict[str, Any]]) -> List[UiElement]:
    """解析无障碍服务导出的节点列表（支持 children 嵌套）"""
    collector = _Collector()
    for node in _walk(nodes):
        class_name = node.get("class") or node.get("className") or ""
        collector.add(
            class_name=class_name,
            text=node.get("text") or "",
            description=node.get("desc") or node.get("contentDescription") or "",
            bounds=parse_bounds(node.get("bounds")),
            clickable=_flag(node.get("clickable")) or _flag(node.get("longClickable")),
            editable=_is_editable(class_name, _flag(node.get("editable"))),
            scrollable=_flag(node.get("scrollable")),
            focused=_flag(node.get("focused")),
        )
    return collector.elements
