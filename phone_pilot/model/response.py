"""模型响应归一化

不同服务返回的 JSON 形状不一样，这里统一整理成 ProviderReply：
- OpenAI 兼容: choices[0].message.{content, tool_calls[].function.{name, arguments}}
- 裸 message: 顶层直接带 tool_calls，元素可以是 {name, arguments}
- Anthropic: content 是块数组，tool_use 块带 name 和 input，text 块带文本
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union


@dataclass
class ProviderReply:
    """一次模型调用的原始结论，尚未经过工具目录校验"""
    tool_name: Optional[str] = None
    arguments: Union[str, Dict[str, Any], None] = None
    text: str = ""
    reasoning: Optional[str] = None
    error: Optional[str] = None

    @property
    def has_tool_call(self) -> bool:
        return self.tool_name is not None

    @property
    def is_blank(self) -> bool:
        return not self.has_tool_call and not self.text.strip() and not self.error


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error.get("type") or error)
    return str(error)


def _join_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text") or "")
            elif isinstance(part, str):
                parts.append(part)
        return "\n".join(p for p in parts if p)
    return str(content)


def _parse_message(message: Dict[str, Any]) -> ProviderReply:
    reply = ProviderReply(
        text=_join_text(message.get("content")),
        reasoning=message.get("reasoning_content") or message.get("reasoning"),
    )

    tool_calls: List[Dict[str, Any]] = message.get("tool_calls") or []
    if not tool_calls and isinstance(message.get("function_call"), dict):
        # 旧版 function_call 字段
        tool_calls = [{"function": message["function_call"]}]

    if tool_calls:
        call = tool_calls[0]
        function = call.get("function") if isinstance(call.get("function"), dict) else call
        reply.tool_name = function.get("name") or ""
        if "arguments" in function:
            reply.arguments = function.get("arguments")
        else:
            reply.arguments = function.get("input")
    return reply


def _parse_content_blocks(blocks: List[Any]) -> ProviderReply:
    reply = ProviderReply()
    texts = []
    thinking = []
    for block in blocks:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "tool_use" and reply.tool_name is None:
            reply.tool_name = block.get("name") or ""
            reply.arguments = block.get("input")
        elif block_type == "text":
            texts.append(block.get("text") or "")
        elif block_type == "thinking":
            thinking.append(block.get("thinking") or "")
    reply.text = "\n".join(t for t in texts if t)
    if thinking:
        reply.reasoning = "\n".join(thinking)
    return reply


def normalize_reply(payload: Any) -> ProviderReply:
    """把任意已知形状的响应体整理成 ProviderReply"""
    if not isinstance(payload, dict):
        return ProviderReply(error=f"无法识别的响应类型: {type(payload).__name__}")

    if payload.get("error"):
        return ProviderReply(error=_error_message(payload["error"]))

    if "choices" in payload:
        choices = payload.get("choices") or []
        if not choices:
            return ProviderReply()
        first = choices[0] or {}
        return _parse_message(first.get("message") or first.get("delta") or {})

    content = payload.get("content")
    if payload.get("type") == "message" or (
        isinstance(content, list)
        and any(isinstance(b, dict) and b.get("type") in ("tool_use", "thinking") for b in content)
    ):
        return _parse_content_blocks(content or [])

    if isinstance(payload.get("message"), dict):
        return _parse_message(payload["message"])

    return _parse_message(payload)
