"""测试后端注册表、ADB 后端和无障碍桥接后端"""

import base64

import pytest

from fakes import FakeADBHelper, FakeBackend

from phone_pilot.backends import (
    AccessibilityBridgeBackend,
    ADBHelper,
    AdbBackend,
    BackendRegistry,
    Privilege,
    TextPayload,
)
from phone_pilot.errors import ExecutionError
from phone_pilot.types import OpenApp, PressKey, Tap


def test_registry_orders_by_privilege():
    root = FakeBackend(name="root", privilege=Privilege.ROOT)
    shell = FakeBackend(name="shell", privilege=Privilege.SHELL)
    a11y = FakeBackend(name="a11y", privilege=Privilege.ACCESSIBILITY)

    registry = BackendRegistry([root, shell, a11y])

    assert [b.name for b in registry.backends] == ["a11y", "shell", "root"]
    assert registry.select(Tap(1, 1)) is a11y


def test_registry_polls_availability_each_time():
    a11y = FakeBackend(name="a11y", privilege=Privilege.ACCESSIBILITY)
    shell = FakeBackend(name="shell")
    registry = BackendRegistry([a11y, shell])

    assert registry.select(Tap(1, 1)) is a11y
    a11y.available = False
    assert registry.select(Tap(1, 1)) is shell, "权限被收回后应选择下一个后端"
    shell.available = False
    assert registry.select(Tap(1, 1)) is None
    assert not registry.has_available()


def test_registry_survives_broken_availability_check():
    class Broken(FakeBackend):
        def is_available(self):
            raise RuntimeError("service died")

    broken = Broken(name="broken", privilege=Privilege.ACCESSIBILITY)
    shell = FakeBackend(name="shell")
    registry = BackendRegistry([broken, shell])

    assert registry.select(Tap(1, 1)) is shell
    assert registry.available() == [shell]


def test_registry_unregister():
    a11y = FakeBackend(name="a11y", privilege=Privilege.ACCESSIBILITY)
    shell = FakeBackend(name="shell")
    registry = BackendRegistry([a11y, shell])

    registry.unregister(a11y)
    registry.unregister(a11y)

    assert registry.backends == [shell]
    assert registry.select(Tap(1, 1)) is shell


def test_registry_release_all():
    backends = [FakeBackend(name="a"), FakeBackend(name="b")]
    registry = BackendRegistry(backends)

    registry.release()

    assert all(b.released for b in backends)


def test_supports_respects_keys_and_capabilities():
    a11y = AccessibilityBridgeBackend("http://127.0.0.1:8765")

    assert a11y.supports(PressKey("back"))
    assert not a11y.supports(PressKey("enter")), "无障碍后端只支持全局按键"
    assert not a11y.supports(OpenApp("微信")), "无障碍后端不能启动应用"
    assert AdbBackend(FakeADBHelper()).supports(OpenApp("微信"))


def test_adb_helper_builds_device_command():
    helper = ADBHelper(device_id="emulator-5554")
    helper._adb_path = "/usr/bin/adb"

    assert helper._build(["shell", "input", "tap", "1", "2"]) == [
        "/usr/bin/adb", "-s", "emulator-5554", "shell", "input", "tap", "1", "2",
    ]


def test_adb_input_text_uses_base64_broadcast():
    """测试：文本以 base64 广播传递，不经过 shell 转义"""
    helper = FakeADBHelper()
    text = "你好 'world' && rm -rf /"

    AdbBackend(helper).input_text(TextPayload(text))

    command = helper.commands[-1]
    assert command[:6] == ["shell", "am", "broadcast", "-a", "ADB_INPUT_B64", "--es"]
    assert base64.b64decode(command[-1]).decode("utf-8") == text


def test_adb_primitives():
    helper = FakeADBHelper()
    backend = AdbBackend(helper)

    backend.tap(10, 20)
    backend.swipe(1, 2, 3, 4, 500)
    backend.press_key(4)
    backend.force_stop("com.tencent.mm")

    assert helper.commands == [
        ["shell", "input", "tap", "10", "20"],
        ["shell", "input", "swipe", "1", "2", "3", "4", "500"],
        ["shell", "input", "keyevent", "4"],
        ["shell", "am", "force-stop", "com.tencent.mm"],
    ]


def test_adb_launch_failure():
    helper = FakeADBHelper({"shell monkey": (True, "** No activities found to run, monkey aborted.")})

    with pytest.raises(ExecutionError):
        AdbBackend(helper).launch("com.example.missing")


def test_adb_shell_failure_raises():
    helper = FakeADBHelper({"shell input": (False, "error: device offline")})

    with pytest.raises(ExecutionError, match="device offline"):
        AdbBackend(helper).tap(1, 1)


def test_adb_screen_size_prefers_override():
    helper = FakeADBHelper({"shell wm size": (True, "Physical size: 1080x2400\nOverride size: 720x1600")})
    backend = AdbBackend(helper)

    assert backend.screen_size() == (720, 1600)
    backend.screen_size()
    assert sum(1 for c in helper.commands if c[:3] == ["shell", "wm", "size"]) == 1, "屏幕尺寸应缓存"


def test_adb_release_marks_unavailable():
    backend = AdbBackend(FakeADBHelper())
    assert backend.is_available()

    backend.release()

    assert not backend.is_available()


class FakeHttpResponse:
    def __init__(self, payload=None, status_code=200, content=b""):
        self.payload = payload
        self.status_code = status_code
        self.content = content

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self.payload


class FakeHttpSession:
    def __init__(self, get_responses=None, post_response=None):
        self.get_responses = get_responses or {}
        self.post_response = post_response or FakeHttpResponse({"success": True, "message": ""})
        self.posts = []
        self.closed = False

    def get(self, url, timeout=None):
        path = url.split("8765", 1)[1]
        return self.get_responses.get(path, FakeHttpResponse(status_code=404))

    def post(self, url, json=None, timeout=None):
        self.posts.append((url.split("8765", 1)[1], json))
        return self.post_response

    def close(self):
        self.closed = True


def test_accessibility_bridge_actions():
    session = FakeHttpSession({"/status": FakeHttpResponse({"enabled": True, "width": 1080, "height": 2340})})
    backend = AccessibilityBridgeBackend("http://127.0.0.1:8765/", session=session)

    assert backend.is_available()
    assert backend.screen_size() == (1080, 2340)
    backend.tap(5, 6)
    backend.input_text(TextPayload("a\"b"))
    backend.press_key(3)

    assert session.posts == [
        ("/gesture", {"type": "tap", "x": 5, "y": 6}),
        ("/text", {"action": "set", "text": "a\"b"}),
        ("/global", {"action": "home"}),
    ]
    backend.release()
    assert session.closed


def test_accessibility_bridge_reported_failure():
    session = FakeHttpSession(post_response=FakeHttpResponse({"success": False, "message": "节点不可点击"}))
    backend = AccessibilityBridgeBackend("http://127.0.0.1:8765", session=session)

    with pytest.raises(ExecutionError, match="节点不可点击"):
        backend.tap(1, 1)
    with pytest.raises(ExecutionError):
        backend.press_key(66)


def test_accessibility_bridge_read_screen():
    session = FakeHttpSession({
        "/screen": FakeHttpResponse({"package": "com.android.settings", "nodes": [{"text": "WLAN"}]}),
        "/screenshot": FakeHttpResponse(content=b"\x89PNG"),
    })
    backend = AccessibilityBridgeBackend("http://127.0.0.1:8765", session=session)

    raw = backend.read_screen()

    assert raw.package == "com.android.settings"
    assert raw.nodes == [{"text": "WLAN"}]
    assert raw.screenshot == b"\x89PNG"


def test_accessibility_bridge_non_object_responses():
    """测试：桥接服务返回 JSON 数组时读屏降级为空，动作返回执行失败"""
    session = FakeHttpSession(
        {
            "/screen": FakeHttpResponse([{"text": "WLAN"}]),
            "/status": FakeHttpResponse(["enabled"]),
            "/screenshot": FakeHttpResponse(content=b"\x89PNG"),
        },
        post_response=FakeHttpResponse(["ok"]),
    )
    backend = AccessibilityBridgeBackend("http://127.0.0.1:8765", session=session)

    raw = backend.read_screen()

    assert raw.nodes is None and raw.package == ""
    assert raw.screenshot == b"\x89PNG"
    assert not backend.is_available()
    assert backend.screen_size() is None
    with pytest.raises(ExecutionError, match="无法识别"):
        backend.tap(1, 1)
