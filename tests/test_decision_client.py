"""测试 DecisionClient：响应映射、参数校验和屏幕描述"""

import pytest

from fakes import FakeProvider, png_bytes, text_reply, tool_reply

from phone_pilot.errors import DecisionError
from phone_pilot.model import DecisionClient
from phone_pilot.model.client import VISION_DISABLED_NOTICE
from phone_pilot.model.response import ProviderReply, normalize_reply
from phone_pilot.tools import build_catalog
from phone_pilot.types import (
    ActionDecision,
    EmptyDecision,
    ErrorDecision,
    ScreenState,
    Scroll,
    Tap,
    TextDecision,
)

CATALOG = build_catalog()


def decide_once(reply, catalog=CATALOG, **kwargs):
    provider = FakeProvider([reply])
    client = DecisionClient(provider, **kwargs)
    result = client.decide("打开设置", ScreenState(package_name="com.android.launcher"), [], catalog)
    return result, provider


def test_missing_required_param_is_error():
    """测试：缺少必填参数 y 时返回错误，而不是 y=0 的点击"""
    payload = {"tool_calls": [{"name": "tap", "arguments": "{\"x\":100}"}]}

    result, _ = decide_once(normalize_reply(payload))

    assert isinstance(result, ErrorDecision), "缺少 y 应该得到 ErrorDecision"
    assert "y" in result.message


def test_valid_tool_call_decodes_action():
    result, _ = decide_once(tool_reply("tap", x=540, y=360, description="点开 WLAN"))

    assert isinstance(result, ActionDecision)
    assert result.action == Tap(x=540, y=360, description="点开 WLAN")


def test_unknown_tool_is_rejected():
    result, _ = decide_once(tool_reply("launch_rocket", target="moon"))

    assert isinstance(result, ErrorDecision)
    assert "launch_rocket" in result.message


def test_describe_screen_rejected_when_not_in_catalog():
    result, _ = decide_once(tool_reply("describe_screen"), catalog=build_catalog(describe_screen=False))

    assert isinstance(result, ErrorDecision)


def test_malformed_json_arguments():
    result, _ = decide_once(ProviderReply(tool_name="tap", arguments="{x: 1,"))

    assert isinstance(result, ErrorDecision)
    assert "JSON" in result.message


def test_wrong_type_is_error():
    result, _ = decide_once(ProviderReply(tool_name="tap", arguments={"x": "左边", "y": 10}))

    assert isinstance(result, ErrorDecision)


def test_loosely_typed_arguments_are_error():
    """测试：true 和 "200" 不会被转换成坐标"""
    result, _ = decide_once(tool_reply("tap", x=True, y="200"))

    assert isinstance(result, ErrorDecision), "类型不符的参数应该得到 ErrorDecision"


def test_negative_wait_is_error():
    result, _ = decide_once(tool_reply("wait", time=-1))

    assert isinstance(result, ErrorDecision)


def test_enum_value_checked():
    result, _ = decide_once(tool_reply("press_key", key="launch_missiles"))

    assert isinstance(result, ErrorDecision)


def test_dict_arguments_accepted():
    result, _ = decide_once(ProviderReply(tool_name="scroll", arguments={"direction": "down"}))

    assert isinstance(result, ActionDecision)
    assert result.action == Scroll(direction="down", distance=50)


def test_empty_argument_string_for_no_arg_tool():
    result, _ = decide_once(ProviderReply(tool_name="clear_text", arguments=""))

    assert isinstance(result, ActionDecision)


def test_text_only_reply():
    result, _ = decide_once(ProviderReply(text="  我需要更多信息  ", reasoning="想一想"))

    assert result == TextDecision(text="我需要更多信息", reasoning="想一想")


def test_blank_reply_is_empty():
    result, _ = decide_once(ProviderReply(text="   "))

    assert isinstance(result, EmptyDecision)


def test_provider_error_becomes_error_decision():
    result, _ = decide_once(DecisionError("API error: 502 - bad gateway"))

    assert result == ErrorDecision("API error: 502 - bad gateway")


def test_reply_error_field():
    result, _ = decide_once(ProviderReply(error="rate limited"))

    assert result == ErrorDecision("rate limited")


def test_request_contents():
    """测试：请求带系统提示词、工具目录和截图"""
    screen = ScreenState(package_name="com.android.settings", screenshot=png_bytes((10, 20)))
    provider = FakeProvider([tool_reply("finished", message="好了")])

    DecisionClient(provider, use_vision=True).decide("打开设置", screen, [], CATALOG)
    DecisionClient(provider, use_vision=False).decide("打开设置", screen, [], CATALOG)

    with_image, without_image = provider.requests
    assert with_image.system_prompt == CATALOG.system_prompt
    assert with_image.tools is CATALOG
    assert with_image.image_base64
    assert "已附带当前截图" in with_image.user_prompt
    assert without_image.image_base64 is None


class Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_describe_screen_cached():
    """测试：5 秒内同一截图和关注点复用描述"""
    vision = FakeProvider([text_reply("描述一"), text_reply("描述二")])
    clock = Clock()
    client = DecisionClient(FakeProvider(), vision_provider=vision, clock=clock)
    shot = png_bytes((10, 20))

    assert client.describe_screen(shot) == "描述一"
    clock.now += 3
    assert client.describe_screen(shot) == "描述一"
    assert len(vision.requests) == 1

    assert client.describe_screen(shot, "底部导航") == "描述二", "关注点不同不应命中缓存"
    clock.now += 6
    client.describe_screen(shot, "底部导航")
    assert len(vision.requests) == 3, "过期后应重新请求"
    assert "底部导航" in vision.requests[1].user_prompt


def test_describe_screen_disabled_after_three_failures():
    """测试：视觉模型连续失败 3 次后停用"""
    vision = FakeProvider([DecisionError("timeout")])
    client = DecisionClient(FakeProvider(), vision_provider=vision)
    shot = png_bytes((10, 20))

    for _ in range(2):
        with pytest.raises(DecisionError):
            client.describe_screen(shot)

    assert client.describe_screen(shot) == VISION_DISABLED_NOTICE["cn"]
    assert not client.vision_available
    assert client.describe_screen(shot) == VISION_DISABLED_NOTICE["cn"]
    assert len(vision.requests) == 3, "停用后不应再请求"

    client.reset_vision()
    assert client.vision_available


def test_describe_screen_without_screenshot():
    client = DecisionClient(FakeProvider([text_reply("x")]))

    with pytest.raises(DecisionError):
        client.describe_screen(None)


def test_describe_uses_main_provider_by_default():
    provider = FakeProvider([text_reply("主模型的描述")])
    client = DecisionClient(provider)

    assert client.describe_screen(png_bytes((10, 20))) == "主模型的描述"
    assert provider.requests[0].tools is None


def test_connection_check():
    assert DecisionClient(FakeProvider([text_reply("pong")])).test_connection()
    assert not DecisionClient(FakeProvider([DecisionError("down")])).test_connection()
