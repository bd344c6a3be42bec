"""测试用的假后端、假模型服务和屏幕样本"""

import io
import json
from typing import Dict, List, Optional, Sequence, Tuple, Union

from PIL import Image

from phone_pilot.backends.base import Capability, CapabilityBackend, Privilege, RawScreen, TextPayload
from phone_pilot.config.settings import ProviderSettings
from phone_pilot.errors import DecisionError, ExecutionError
from phone_pilot.model.providers import ModelProvider, ModelRequest
from phone_pilot.model.response import ProviderReply

SETTINGS_XML = """<?xml version='1.0' encoding='UTF-8' standalone='yes' ?>
<hierarchy rotation="0">
  <node index="0" text="" class="android.widget.FrameLayout" content-desc="" clickable="false" scrollable="false" focused="false" bounds="[0,0][1080,2400]">
    <node index="0" text="WLAN" class="android.widget.TextView" content-desc="" clickable="true" scrollable="false" focused="false" bounds="[48,300][1032,420]" />
    <node index="1" text="" class="android.widget.EditText" content-desc="搜索" clickable="true" scrollable="false" focused="true" bounds="[48,120][1032,240]" />
    <node index="2" text="隐藏" class="android.widget.TextView" content-desc="" clickable="false" scrollable="false" focused="false" bounds="[0,0][0,0]" />
    <node index="3" text="" class="androidx.recyclerview.widget.RecyclerView" content-desc="" clickable="false" scrollable="true" focused="false" bounds="[0,240][1080,2400]" />
  </node>
</hierarchy>"""

EMPTY_XML = '<?xml version="1.0" encoding="UTF-8"?><hierarchy rotation="0"></hierarchy>'


def png_bytes(size: Tuple[int, int] = (1080, 2400)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, (255, 255, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


def tool_reply(name: str, **arguments) -> ProviderReply:
    """模型返回一次工具调用，参数按线上格式编码成 JSON 字符串"""
    return ProviderReply(tool_name=name, arguments=json.dumps(arguments, ensure_ascii=False))


def text_reply(text: str) -> ProviderReply:
    return ProviderReply(text=text)


Scripted = Union[ProviderReply, Exception]


class FakeProvider(ModelProvider):
    """按脚本依次返回响应；脚本用完后重复最后一条"""

    def __init__(self, replies: Sequence[Scripted] = ()):
        super().__init__(ProviderSettings(provider="custom", model="fake-model"))
        self.replies: List[Scripted] = list(replies)
        self.requests: List[ModelRequest] = []

    def complete(self, request: ModelRequest) -> ProviderReply:
        self.requests.append(request)
        if not self.replies:
            raise DecisionError("没有预设的响应")
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeBackend(CapabilityBackend):
    """
    记录所有原语调用的后端

    fail_on 可以是原语名（该原语总是失败），也可以是完整调用元组，如 ("tap", 2, 2)。
    """

    def __init__(
        self,
        name: str = "fake",
        privilege: Privilege = Privilege.SHELL,
        capabilities: Optional[Sequence[Capability]] = None,
        supported_keys: Optional[Sequence[str]] = None,
        available: bool = True,
        raw_screen: Optional[RawScreen] = None,
        screen_error: bool = False,
        fail_on: Sequence = (),
        size: Optional[Tuple[int, int]] = (1080, 1920),
    ):
        self.name = name
        self.privilege = privilege
        self.capabilities = frozenset(Capability) if capabilities is None else frozenset(capabilities)
        self.supported_keys = frozenset(supported_keys) if supported_keys is not None else None
        self.available = available
        self.raw_screen = raw_screen if raw_screen is not None else RawScreen(
            ui_xml=SETTINGS_XML, package="com.android.settings", activity="com.android.settings.Settings"
        )
        self.screen_error = screen_error
        self.fail_on = set(fail_on)
        self.size = size
        self.calls: List[tuple] = []
        self.released = False

    @property
    def actions(self) -> List[tuple]:
        """除读屏以外的调用"""
        return [c for c in self.calls if c[0] != "read_screen"]

    def _record(self, name: str, *args) -> str:
        call = (name,) + args
        self.calls.append(call)
        if name in self.fail_on or call in self.fail_on:
            raise ExecutionError(f"{name} 失败")
        return f"{name} ok"

    def is_available(self) -> bool:
        return self.available

    def read_screen(self, include_screenshot: bool = True) -> RawScreen:
        self.calls.append(("read_screen",))
        if self.screen_error:
            raise ExecutionError("读屏失败")
        raw = self.raw_screen
        return RawScreen(
            ui_xml=raw.ui_xml,
            nodes=raw.nodes,
            screenshot=raw.screenshot if include_screenshot else None,
            package=raw.package,
            activity=raw.activity,
        )

    def screen_size(self) -> Optional[Tuple[int, int]]:
        return self.size

    def tap(self, x: int, y: int) -> str:
        return self._record("tap", x, y)

    def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int) -> str:
        return self._record("swipe", x1, y1, x2, y2, duration_ms)

    def input_text(self, payload: TextPayload) -> str:
        return self._record("input_text", payload.text)

    def clear_text(self) -> str:
        return self._record("clear_text")

    def press_key(self, code: int) -> str:
        return self._record("press_key", code)

    def launch(self, identifier: str) -> str:
        return self._record("launch", identifier)

    def force_stop(self, identifier: str) -> str:
        return self._record("force_stop", identifier)

    def release(self) -> None:
        self.released = True


class FakeADBHelper:
    """替代 ADBHelper，按命令前缀返回预设输出并记录参数"""

    def __init__(self, overrides: Optional[Dict[str, Tuple[bool, str]]] = None, screenshot: bytes = b""):
        self.commands: List[List[str]] = []
        self.screenshot = screenshot
        self.responses: Dict[str, Tuple[bool, str]] = {
            "shell dumpsys window": (
                True,
                "  mCurrentFocus=Window{5e1a u0 com.android.settings/com.android.settings.Settings}",
            ),
            "shell uiautomator dump": (True, "UI hierchary dumped to: /sdcard/phone_pilot_ui.xml"),
            "exec-out cat": (True, SETTINGS_XML),
            "shell wm size": (True, "Physical size: 1080x2400"),
            "get-state": (True, "device"),
        }
        self.responses.update(overrides or {})
        self.raise_on: Optional[str] = None

    def is_available(self) -> bool:
        ok, output = self.run_command(["get-state"])
        return ok and output == "device"

    def run_command(self, args: List[str], timeout: int = 30) -> Tuple[bool, str]:
        self.commands.append(list(args))
        joined = " ".join(args)
        if self.raise_on and joined.startswith(self.raise_on):
            raise OSError(f"{self.raise_on} 被中断")
        for prefix, response in self.responses.items():
            if joined.startswith(prefix):
                return response
        return True, ""

    def run_binary(self, args: List[str], timeout: int = 10) -> Tuple[bool, bytes]:
        self.commands.append(list(args))
        return bool(self.screenshot), self.screenshot

    def ran(self, prefix: str) -> bool:
        return any(" ".join(c).startswith(prefix) for c in self.commands)
