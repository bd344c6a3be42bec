"""工具目录

模型能调用的动作全部定义在这里。目录是动作种类的唯一来源：
不在目录里的工具名一律拒绝，参数用 pydantic 按参数表校验。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from phone_pilot.config import get_chat_prompt, get_system_prompt
from phone_pilot.errors import ToolValidationError

_PY_TYPES = {
    "integer": int,
    "number": float,
    "string": str,
    "boolean": bool,
    "array": List[str],
}

MAX_DURATION_MS = 10000
MAX_WAIT_MS = 30000

KEY_NAMES = (
    "back", "home", "recent", "enter", "delete",
    "tab", "space", "power", "volume_up", "volume_down",
)
SCROLL_DIRECTIONS = ("up", "down", "left", "right")


@dataclass(frozen=True)
class ToolParam:
    name: str
    type: str  # integer / number / string / boolean / array
    description: str
    required: bool = False
    enum: Optional[Tuple[str, ...]] = None
    minimum: Optional[int] = None
    maximum: Optional[int] = None

    def to_json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type, "description": self.description}
        if self.type == "array":
            schema["items"] = {"type": "string"}
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.minimum is not None:
            schema["minimum"] = self.minimum
        if self.maximum is not None:
            schema["maximum"] = self.maximum
        return schema


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    params: Tuple[ToolParam, ...] = ()

    @property
    def required(self) -> List[str]:
        return [p.name for p in self.params if p.required]

    def parameters_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {p.name: p.to_json_schema() for p in self.params},
            "required": self.required,
        }

    def build_model(self) -> type:
        """严格模式：不做类型转换，true 不算整数，"200" 也不算整数"""
        fields = {}
        for p in self.params:
            py_type: Any = Literal[p.enum] if p.enum else _PY_TYPES[p.type]
            bounds = Field(... if p.required else None, ge=p.minimum, le=p.maximum)
            fields[p.name] = (py_type if p.required else Optional[py_type], bounds)
        return create_model(
            f"{self.name.title().replace('_', '')}Args",
            __config__=ConfigDict(extra="ignore", strict=True),
            **fields,
        )


class ToolCatalog:
    """不可变的工具列表 + 使用策略提示词"""

    def __init__(self, tools: List[Tool], system_prompt: str):
        self._tools: Dict[str, Tool] = {t.name: t for t in tools}
        self._models: Dict[str, type] = {t.name: t.build_model() for t in tools}
        self.system_prompt = system_prompt

    @property
    def tools(self) -> Tuple[Tool, ...]:
        return tuple(self._tools.values())

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def lookup(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def validate(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """校验参数，返回去掉空值后的参数字典"""
        model: Optional[type] = self._models.get(name)
        if model is None:
            raise ToolValidationError(name, "未知工具")
        if not isinstance(arguments, dict):
            raise ToolValidationError(name, f"参数必须是对象，收到 {type(arguments).__name__}")
        try:
            parsed: BaseModel = model.model_validate(arguments)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ToolValidationError(name, problems) from e
        return parsed.model_dump(exclude_none=True)

    def to_openai_tools(self) -> List[Dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.parameters_schema(),
                },
            }
            for t in self._tools.values()
        ]

    def to_anthropic_tools(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": t.name,
                "description": t.description,
                "input_schema": t.parameters_schema(),
            }
            for t in self._tools.values()
        ]


_DESC = ToolParam("description", "string", "这一步操作的简短说明")


def _point_params() -> Tuple[ToolParam, ...]:
    return (
        ToolParam("x", "integer", "横坐标", required=True, minimum=0),
        ToolParam("y", "integer", "纵坐标", required=True, minimum=0),
    )


DEVICE_TOOLS: Tuple[Tool, ...] = (
    Tool("tap", "点击屏幕指定坐标", _point_params() + (_DESC,)),
    Tool("long_press", "长按屏幕指定坐标", _point_params() + (
        ToolParam("duration", "integer", "长按时长(毫秒)，默认800", minimum=1, maximum=MAX_DURATION_MS),
        _DESC,
    )),
    Tool("double_tap", "双击屏幕指定坐标", _point_params() + (_DESC,)),
    Tool("swipe", "自定义滑动，从起点滑动到终点", (
        ToolParam("start_x", "integer", "起点横坐标", required=True, minimum=0),
        ToolParam("start_y", "integer", "起点纵坐标", required=True, minimum=0),
        ToolParam("end_x", "integer", "终点横坐标", required=True, minimum=0),
        ToolParam("end_y", "integer", "终点纵坐标", required=True, minimum=0),
        ToolParam("duration", "integer", "滑动时长(毫秒)，默认300", minimum=1, maximum=MAX_DURATION_MS),
        _DESC,
    )),
    Tool("scroll", "按方向滚动屏幕内容（up 表示手指向上滑，查看下方内容）", (
        ToolParam("direction", "string", "滚动方向", required=True, enum=SCROLL_DIRECTIONS),
        ToolParam("distance", "integer", "滑动距离占屏幕的百分比(1-100)，上下默认50，左右默认30"),
        _DESC,
    )),
    Tool("input_text", "在当前获得焦点的输入框输入文字", (
        ToolParam("text", "string", "要输入的文字", required=True),
        _DESC,
    )),
    Tool("clear_text", "清空当前输入框", (_DESC,)),
    Tool("press_key", "按下系统按键", (
        ToolParam("key", "string", "按键名称", required=True, enum=KEY_NAMES),
        _DESC,
    )),
    Tool("open_app", "打开指定应用", (
        ToolParam("app", "string", "应用名称，如：微信、支付宝、设置", required=True),
        _DESC,
    )),
    Tool("close_app", "关闭指定应用", (
        ToolParam("app", "string", "应用名称", required=True),
        _DESC,
    )),
    Tool("wait", "等待页面加载", (
        ToolParam("time", "integer", "等待时间(毫秒)，默认2000", minimum=0, maximum=MAX_WAIT_MS),
        _DESC,
    )),
)

DESCRIBE_SCREEN_TOOL = Tool(
    "describe_screen",
    "获取当前截图的文字描述，用于元素列表不足以理解界面时；不能连续两轮调用",
    (ToolParam("focus", "string", "希望重点描述的内容，例如：弹窗、底部导航栏"),),
)

TERMINAL_TOOLS: Tuple[Tool, ...] = (
    Tool("finished", "任务已完成", (
        ToolParam("message", "string", "完成说明或给用户的回复", required=True),
    )),
    Tool("failed", "任务失败，无法继续", (
        ToolParam("message", "string", "失败原因", required=True),
    )),
    Tool("ask_user", "需要询问用户获取更多信息或确认", (
        ToolParam("question", "string", "要问用户的问题", required=True),
        ToolParam("options", "array", "可选的建议回答"),
    )),
)


def build_catalog(describe_screen: bool = True, lang: str = "cn") -> ToolCatalog:
    """构建设备控制用的工具目录，describe_screen 决定是否提供屏幕描述工具"""
    tools = list(DEVICE_TOOLS)
    if describe_screen:
        tools.append(DESCRIBE_SCREEN_TOOL)
    tools.extend(TERMINAL_TOOLS)
    return ToolCatalog(tools, get_system_prompt(lang, describe_screen))


def build_chat_catalog(lang: str = "cn") -> ToolCatalog:
    """闲聊模式只提供 finished 和 failed"""
    return ToolCatalog([t for t in TERMINAL_TOOLS if t.name != "ask_user"], get_chat_prompt(lang))
