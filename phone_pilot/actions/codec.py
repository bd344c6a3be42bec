"""工具调用 <-> AgentAction 的双向转换

decode 只接受已经过 ToolCatalog.validate 的参数；encode 输出的参数再次 decode 得到相等的动作。
"""

from typing import Any, Dict, Tuple

from phone_pilot.types import (
    ActionKind,
    AgentAction,
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


def default_scroll_distance(direction: str) -> int:
    return 50 if direction in ("up", "down") else 30


def decode(tool_name: str, args: Dict[str, Any]) -> AgentAction:
    """把工具名和校验过的参数映射为具体动作"""
    try:
        kind = ActionKind(tool_name)
    except ValueError:
        raise ValueError(f"未知工具: {tool_name}") from None

    desc = args.get("description", "") or ""

    if kind == ActionKind.TAP:
        return Tap(x=args["x"], y=args["y"], description=desc)
    elif kind == ActionKind.LONG_PRESS:
        return LongPress(
            x=args["x"], y=args["y"],
            duration_ms=args.get("duration", 800),
            description=desc,
        )
    elif kind == ActionKind.DOUBLE_TAP:
        return DoubleTap(x=args["x"], y=args["y"], description=desc)
    elif kind == ActionKind.SWIPE:
        return Swipe(
            start_x=args["start_x"], start_y=args["start_y"],
            end_x=args["end_x"], end_y=args["end_y"],
            duration_ms=args.get("duration", 300),
            description=desc,
        )
    elif kind == ActionKind.SCROLL:
        direction = args["direction"]
        distance = args.get("distance", default_scroll_distance(direction))
        return Scroll(direction=direction, distance=max(1, min(100, distance)), description=desc)
    elif kind == ActionKind.INPUT_TEXT:
        return InputText(text=args["text"], description=desc)
    elif kind == ActionKind.CLEAR_TEXT:
        return ClearText(description=desc)
    elif kind == ActionKind.PRESS_KEY:
        return PressKey(key=args["key"], description=desc)
    elif kind == ActionKind.OPEN_APP:
        return OpenApp(app=args["app"], description=desc)
    elif kind == ActionKind.CLOSE_APP:
        return CloseApp(app=args["app"], description=desc)
    elif kind == ActionKind.DESCRIBE_SCREEN:
        return DescribeScreen(focus=args.get("focus", "") or "", description=desc)
    elif kind == ActionKind.WAIT:
        return Wait(duration_ms=args.get("time", 2000), description=desc)
    elif kind == ActionKind.FINISHED:
        return Finished(message=args["message"])
    elif kind == ActionKind.FAILED:
        return Failed(message=args["message"])
    elif kind == ActionKind.ASK_USER:
        return AskUser(question=args["question"], options=tuple(args.get("options") or ()))

    raise ValueError(f"未处理的动作类型: {kind}")


def encode(action: AgentAction) -> Tuple[str, Dict[str, Any]]:
    """把动作还原成 (工具名, 参数)"""
    if isinstance(action, (Tap, DoubleTap)):
        args: Dict[str, Any] = {"x": action.x, "y": action.y}
    elif isinstance(action, LongPress):
        args = {"x": action.x, "y": action.y, "duration": action.duration_ms}
    elif isinstance(action, Swipe):
        args = {
            "start_x": action.start_x, "start_y": action.start_y,
            "end_x": action.end_x, "end_y": action.end_y,
            "duration": action.duration_ms,
        }
    elif isinstance(action, Scroll):
        args = {"direction": action.direction, "distance": action.distance}
    elif isinstance(action, InputText):
        args = {"text": action.text}
    elif isinstance(action, ClearText):
        args = {}
    elif isinstance(action, PressKey):
        args = {"key": action.key}
    elif isinstance(action, (OpenApp, CloseApp)):
        args = {"app": action.app}
    elif isinstance(action, DescribeScreen):
        args = {"focus": action.focus} if action.focus else {}
    elif isinstance(action, Wait):
        args = {"time": action.duration_ms}
    elif isinstance(action, (Finished, Failed)):
        return action.kind.value, {"message": action.message}
    elif isinstance(action, AskUser):
        args = {"question": action.question}
        if action.options:
            args["options"] = list(action.options)
        return action.kind.value, args
    else:
        raise TypeError(f"未知动作类型: {type(action).__name__}")

    if action.description:
        args["description"] = action.description
    return action.kind.value, args
