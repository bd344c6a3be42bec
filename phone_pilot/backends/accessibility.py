"""无障碍桥接后端

设备上的无障碍服务通过一个本地 HTTP 桥暴露节点树、截图和手势接口（通常经 adb forward 映射到本机端口）。
协议是简单的 JSON：
    GET  /status       -> {"enabled": bool}
    GET  /screen       -> {"package", "activity", "nodes": [...]}
    GET  /screenshot   -> PNG 字节
    POST /gesture      {"type": "tap"|"swipe", ...}
    POST /text         {"action": "set"|"clear", "text": ...}
    POST /global       {"action": "back"|"home"|"recent"}
动作接口返回 {"success": bool, "message": str}。
"""

import logging
from typing import Any, Dict, Optional, Tuple

import requests

from phone_pilot.backends.base import (
    Capability,
    CapabilityBackend,
    KEY_CODES,
    Privilege,
    RawScreen,
    TextPayload,
)
from phone_pilot.errors import ExecutionError

logger = logging.getLogger(__name__)

GLOBAL_KEYS = ("back", "home", "recent")
_GLOBAL_ACTIONS = {KEY_CODES[name]: name for name in GLOBAL_KEYS}


class AccessibilityBridgeBackend(CapabilityBackend):
    """无障碍服务后端（最低权限），只支持全局按键"""

    name = "accessibility"
    privilege = Privilege.ACCESSIBILITY
    capabilities = frozenset({
        Capability.READ_SCREEN,
        Capability.SCREENSHOT,
        Capability.GESTURE,
        Capability.TEXT,
        Capability.KEY,
    })
    supported_keys = frozenset(GLOBAL_KEYS)

    def __init__(self, base_url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _status(self) -> Dict[str, Any]:
        response = self.session.get(self._url("/status"), timeout=self.timeout)
        data = response.json() if response.ok else {}
        return data if isinstance(data, dict) else {}

    def is_available(self) -> bool:
        try:
            return bool(self._status().get("enabled"))
        except (requests.RequestException, ValueError):
            return False

    def _post(self, path: str, body: Dict[str, Any]) -> str:
        try:
            response = self.session.post(self._url(path), json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExecutionError(f"无障碍服务请求失败: {e}") from e
        if not response.ok:
            raise ExecutionError(f"无障碍服务返回 {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise ExecutionError("无障碍服务返回了非 JSON 响应") from e
        if not isinstance(data, dict):
            raise ExecutionError(f"无障碍服务返回了无法识别的响应: {type(data).__name__}")
        if not data.get("success"):
            raise ExecutionError(data.get("message") or f"{path} 执行失败")
        return data.get("message", "")

    # ---- 读屏 ----

    def read_screen(self, include_screenshot: bool = True) -> RawScreen:
        raw = RawScreen()
        try:
            response = self.session.get(self._url("/screen"), timeout=self.timeout)
            data = response.json() if response.ok else None
            if isinstance(data, dict):
                raw.nodes = data.get("nodes")
                raw.package = data.get("package") or ""
                raw.activity = data.get("activity")
        except (requests.RequestException, ValueError) as e:
            logger.warning("读取无障碍节点失败: %s", e)

        if include_screenshot:
            try:
                response = self.session.get(self._url("/screenshot"), timeout=self.timeout)
                if response.ok and response.content:
                    raw.screenshot = response.content
            except requests.RequestException as e:
                logger.warning("无障碍截图失败: %s", e)
        return raw

    def screen_size(self) -> Optional[Tuple[int, int]]:
        try:
            data = self._status()
        except (requests.RequestException, ValueError):
            return None
        width, height = data.get("width"), data.get("height")
        if width and height:
            return int(width), int(height)
        return None

    # ---- 动作原语 ----

    def tap(self, x: int, y: int) -> str:
        return self._post("/gesture", {"type": "tap", "x": x, "y": y}) or f"点击 ({x}, {y})"

    def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int) -> str:
        body = {"type": "swipe", "x1": x1, "y1": y1, "x2": x2, "y2": y2, "duration": duration_ms}
        return self._post("/gesture", body) or f"滑动 ({x1}, {y1}) -> ({x2}, {y2})"

    def input_text(self, payload: TextPayload) -> str:
        return self._post("/text", {"action": "set", "text": payload.text}) or "已输入文本"

    def clear_text(self) -> str:
        return self._post("/text", {"action": "clear"}) or "已清空输入框"

    def press_key(self, code: int) -> str:
        action = _GLOBAL_ACTIONS.get(code)
        if action is None:
            raise ExecutionError(f"无障碍服务不支持按键 {code}")
        return self._post("/global", {"action": action}) or f"按键 {action}"

    def release(self) -> None:
        self.session.close()
