"""测试工具目录和动作编解码"""

import pytest

from phone_pilot.actions import decode, encode
from phone_pilot.errors import ToolValidationError
from phone_pilot.tools import build_catalog, build_chat_catalog
from phone_pilot.types import (
    ActionKind,
    AskUser,
    ClearText,
    CloseApp,
    DescribeScreen,
    DoubleTap,
    Failed,
    Finished,
    InputText,
    LongPress,
    OpenApp,
    PressKey,
    Scroll,
    Swipe,
    Tap,
    Wait,
)


def test_catalog_variants():
    """测试：describe_screen 工具按配置出现，提示词说明不能连续调用"""
    full = build_catalog(describe_screen=True)
    plain = build_catalog(describe_screen=False)

    assert "describe_screen" in full
    assert "describe_screen" not in plain
    assert len(full) == len(plain) + 1
    assert "describe_screen" in full.system_prompt and "不能连续" in full.system_prompt
    assert "describe_screen" not in plain.system_prompt


def test_catalog_covers_every_action_kind():
    assert set(build_catalog().names) == {k.value for k in ActionKind}


def test_chat_catalog_is_terminal_only():
    chat = build_chat_catalog()

    assert chat.names == ["finished", "failed"]
    assert chat.lookup("tap") is None


def test_english_prompt():
    assert "describe_screen" in build_catalog(lang="en").system_prompt


def test_validate_required_and_types():
    catalog = build_catalog()

    assert catalog.validate("tap", {"x": 1, "y": 2}) == {"x": 1, "y": 2}
    with pytest.raises(ToolValidationError) as excinfo:
        catalog.validate("tap", {"x": 1})
    assert excinfo.value.tool_name == "tap"
    with pytest.raises(ToolValidationError):
        catalog.validate("scroll", {"direction": "sideways"})
    with pytest.raises(ToolValidationError):
        catalog.validate("input_text", ["hello"])
    with pytest.raises(ToolValidationError):
        catalog.validate("fly", {})


@pytest.mark.parametrize("args", [
    {"x": True, "y": 200},
    {"x": 100, "y": "200"},
    {"x": 100.0, "y": 200},
])
def test_validate_is_strict(args):
    """测试：不做类型转换，布尔值、数字字符串和浮点数都不算整数"""
    with pytest.raises(ToolValidationError):
        build_catalog().validate("tap", args)


@pytest.mark.parametrize("name, args", [
    ("wait", {"time": -1}),
    ("wait", {"time": 3_600_000}),
    ("long_press", {"x": 1, "y": 1, "duration": 0}),
    ("swipe", {"start_x": 0, "start_y": 0, "end_x": 1, "end_y": 1, "duration": 60_000}),
    ("tap", {"x": -5, "y": 10}),
])
def test_validate_numeric_bounds(name, args):
    with pytest.raises(ToolValidationError):
        build_catalog().validate(name, args)


def test_validate_drops_unknown_fields():
    catalog = build_catalog()

    assert catalog.validate("press_key", {"key": "home", "force": True}) == {"key": "home"}


def test_openai_and_anthropic_schemas():
    catalog = build_catalog()
    openai_tools = {t["function"]["name"]: t["function"] for t in catalog.to_openai_tools()}
    anthropic_tools = {t["name"]: t for t in catalog.to_anthropic_tools()}

    scroll = openai_tools["scroll"]["parameters"]
    assert scroll["required"] == ["direction"]
    assert scroll["properties"]["direction"]["enum"] == ["up", "down", "left", "right"]
    assert anthropic_tools["ask_user"]["input_schema"]["properties"]["options"]["items"] == {"type": "string"}
    assert all(t["type"] == "function" for t in catalog.to_openai_tools())
    wait_time = openai_tools["wait"]["parameters"]["properties"]["time"]
    assert (wait_time["minimum"], wait_time["maximum"]) == (0, 30000)


@pytest.mark.parametrize("action", [
    Tap(540, 360, description="点开 WLAN"),
    LongPress(10, 20, duration_ms=1200),
    DoubleTap(1, 2),
    Swipe(100, 1500, 100, 500, duration_ms=400, description="上滑"),
    Scroll("left", 30),
    InputText("你好，世界"),
    ClearText(),
    PressKey("back"),
    OpenApp("微信"),
    CloseApp("com.tencent.mm"),
    DescribeScreen(focus="弹窗"),
    DescribeScreen(),
    Wait(3000),
    Finished("已完成"),
    Failed("找不到入口"),
    AskUser("选哪个？", options=("A", "B")),
])
def test_encode_decode_lossless(action):
    """测试：编码后经目录校验再解码，得到相等的动作"""
    name, args = encode(action)

    validated = build_catalog().validate(name, args)

    assert decode(name, validated) == action


def test_decode_defaults():
    assert decode("long_press", {"x": 1, "y": 2}).duration_ms == 800
    assert decode("swipe", {"start_x": 0, "start_y": 0, "end_x": 1, "end_y": 1}).duration_ms == 300
    assert decode("wait", {}).duration_ms == 2000
    assert decode("scroll", {"direction": "up"}).distance == 50
    assert decode("scroll", {"direction": "right"}).distance == 30
    assert decode("scroll", {"direction": "down", "distance": 500}).distance == 100
    assert decode("ask_user", {"question": "?"}).options == ()


def test_decode_unknown_tool():
    with pytest.raises(ValueError):
        decode("teleport", {})
