"""决策客户端

把屏幕快照和任务交给模型，返回归一化的 DecisionResult。
所有服务端错误都在这里转成 ErrorDecision，不向 Orchestrator 抛出。
"""

import base64
import hashlib
import json
import logging
import time
from typing import Callable, Dict, Optional, Sequence, Tuple

from phone_pilot.actions.codec import decode
from phone_pilot.config import get_vision_prompt
from phone_pilot.errors import DecisionError, ToolValidationError
from phone_pilot.model.prompt import PromptBuilder
from phone_pilot.model.providers import ModelProvider, ModelRequest
from phone_pilot.model.response import ProviderReply
from phone_pilot.tools.catalog import ToolCatalog
from phone_pilot.types import (
    ActionDecision,
    DecisionResult,
    EmptyDecision,
    ErrorDecision,
    ScreenState,
    Step,
    TextDecision,
)

logger = logging.getLogger(__name__)

DESCRIPTION_CACHE_SECONDS = 5.0
VISION_MAX_FAILURES = 3

VISION_DISABLED_NOTICE = {
    "cn": "[视觉不可用] 视觉模型连续失败，已切换到仅元素列表模式。请根据屏幕元素信息进行操作。",
    "en": "[Vision unavailable] The vision model failed repeatedly; rely on the screen element list only.",
}


class DecisionClient:
    """
    决策客户端

    Args:
        provider: 主决策模型
        vision_provider: 屏幕描述使用的视觉模型，为空时复用主模型
        prompt_builder: 用户提示词构建器
        use_vision: 是否在决策请求中附带截图
        lang: 'cn' 或 'en'
    """

    def __init__(
        self,
        provider: ModelProvider,
        vision_provider: Optional[ModelProvider] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        use_vision: bool = False,
        lang: str = "cn",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.vision_provider = vision_provider or provider
        self.prompt_builder = prompt_builder or PromptBuilder(lang=lang)
        self.use_vision = use_vision
        self.lang = lang
        self._clock = clock

        self._vision_available = True
        self._vision_failures = 0
        self._description_cache: Dict[Tuple[str, str], Tuple[float, str]] = {}

    # ==================== 决策 ====================

    def decide(
        self,
        prompt: str,
        screen_state: ScreenState,
        history: Sequence[Step],
        tools: ToolCatalog,
        feedback: Optional[str] = None,
        sensitive: bool = False,
    ) -> DecisionResult:
        """一次决策调用，sensitive 为 True 时提示词要求模型在敏感操作前先询问用户"""
        with_image = self.use_vision and screen_state.has_screenshot
        user_prompt = self.prompt_builder.build(
            prompt,
            screen_state,
            history,
            feedback=feedback,
            describe_enabled="describe_screen" in tools,
            with_screenshot=with_image,
            sensitive=sensitive,
        )
        request = ModelRequest(
            system_prompt=tools.system_prompt,
            user_prompt=user_prompt,
            tools=tools,
            image_base64=base64.b64encode(screen_state.screenshot).decode("utf-8") if with_image else None,
        )

        try:
            reply = self.provider.complete(request)
        except DecisionError as e:
            logger.warning("决策请求失败: %s", e)
            return ErrorDecision(str(e))

        return self.interpret(reply, tools)

    def interpret(self, reply: ProviderReply, tools: ToolCatalog) -> DecisionResult:
        """把归一化后的响应映射为 DecisionResult"""
        if reply.error:
            return ErrorDecision(reply.error)

        reasoning = reply.reasoning or None

        if reply.has_tool_call:
            name = reply.tool_name or ""
            if tools.lookup(name) is None:
                logger.warning("模型调用了未知工具: %s", name)
                return ErrorDecision(f"未知工具: {name or '(空)'}")

            arguments = reply.arguments
            if isinstance(arguments, str):
                raw = arguments.strip()
                try:
                    arguments = json.loads(raw) if raw else {}
                except json.JSONDecodeError as e:
                    logger.warning("工具参数不是合法 JSON: %s", raw[:200])
                    return ErrorDecision(f"{name} 参数 JSON 解析失败: {e.msg}")
            elif arguments is None:
                arguments = {}

            try:
                validated = tools.validate(name, arguments)
            except ToolValidationError as e:
                logger.warning("工具参数校验失败: %s", e)
                return ErrorDecision(f"参数校验失败: {e}")

            action = decode(name, validated)
            return ActionDecision(action=action, reasoning=reasoning or (reply.text.strip() or None))

        text = reply.text.strip()
        if text:
            return TextDecision(text=text, reasoning=reasoning)
        return EmptyDecision(reasoning=reasoning)

    # ==================== 屏幕描述 ====================

    @property
    def vision_available(self) -> bool:
        return self._vision_available

    def reset_vision(self) -> None:
        """手动恢复视觉模型"""
        self._vision_available = True
        self._vision_failures = 0
        self._description_cache.clear()
        logger.info("视觉模型已恢复可用")

    def describe_screen(self, screenshot: Optional[bytes], focus_hint: Optional[str] = None) -> str:
        """
        调用视觉模型描述截图

        连续失败达到上限后不再请求，直接返回降级提示；未达到上限的失败抛出 DecisionError。
        """
        if not self._vision_available:
            return VISION_DISABLED_NOTICE.get(self.lang, VISION_DISABLED_NOTICE["cn"])

        if not screenshot:
            raise DecisionError("没有可用的截图")

        key = (hashlib.md5(screenshot).hexdigest(), focus_hint or "")
        now = self._clock()
        cached = self._description_cache.get(key)
        if cached and now - cached[0] < DESCRIPTION_CACHE_SECONDS:
            logger.debug("使用缓存的屏幕描述")
            return cached[1]

        prompt = get_vision_prompt(self.lang)
        if focus_hint:
            prompt += f"\n重点关注: {focus_hint}" if self.lang != "en" else f"\nFocus on: {focus_hint}"

        request = ModelRequest(
            system_prompt="",
            user_prompt=prompt,
            image_base64=base64.b64encode(screenshot).decode("utf-8"),
        )
        try:
            reply = self.vision_provider.complete(request)
            description = reply.text.strip()
            if not description:
                raise DecisionError("视觉模型返回空描述")
        except DecisionError:
            self._vision_failures += 1
            logger.warning("屏幕描述失败 (连续 %d 次)", self._vision_failures)
            if self._vision_failures >= VISION_MAX_FAILURES:
                self._vision_available = False
                logger.warning("视觉模型连续失败 %d 次，已停用", VISION_MAX_FAILURES)
                return VISION_DISABLED_NOTICE.get(self.lang, VISION_DISABLED_NOTICE["cn"])
            raise

        self._vision_failures = 0
        self._description_cache = {key: (now, description)}
        return description

    # ==================== 其他 ====================

    def chat(self, text: str, system_prompt: str = "") -> str:
        """不带工具的普通对话"""
        reply = self.provider.complete(ModelRequest(system_prompt=system_prompt, user_prompt=text))
        return reply.text.strip()

    def test_connection(self) -> bool:
        try:
            return bool(self.chat("ping"))
        except DecisionError as e:
            logger.warning("连接测试失败: %s", e)
            return False
