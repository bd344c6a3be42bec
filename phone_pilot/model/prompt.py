"""用户提示词构建"""

from typing import List, Optional, Sequence

from phone_pilot.types import DescribeScreen, ScreenState, Step

LABELS = {
    "cn": {
        "task": "## 用户任务",
        "state": "## 当前状态",
        "app": "应用",
        "page": "页面",
        "unknown_app": "未知",
        "elements": "## 屏幕元素（[编号] \"文字\" 类型 (中心x,中心y) [属性]）",
        "no_elements": "（未检测到可交互元素，可调用 describe_screen 获取视觉信息）",
        "no_elements_plain": "（未检测到可交互元素）",
        "truncated": "... 还有 {n} 个元素未显示，可滑动查看更多",
        "vision": "## 屏幕视觉描述",
        "history": "## 已执行步骤（最近 {n} 步）",
        "feedback": "## 上一轮反馈",
        "request": "## 请求\n根据以上信息，调用一个工具执行下一步操作。目标达成后立即调用 finished。",
        "screenshot": "（已附带当前截图）",
        "sensitive": "## 注意\n该任务涉及支付、转账等敏感操作。确认付款、转账、下单等不可撤销的操作前，必须先调用 ask_user 征得用户同意。",
    },
    "en": {
        "task": "## Task",
        "state": "## Current state",
        "app": "App",
        "page": "Page",
        "unknown_app": "unknown",
        "elements": "## Screen elements ([id] \"text\" kind (center_x,center_y) [flags])",
        "no_elements": "(No interactive elements detected; call describe_screen for a visual description)",
        "no_elements_plain": "(No interactive elements detected)",
        "truncated": "... {n} more elements not shown; scroll to see more",
        "vision": "## Screen description",
        "history": "## Executed steps (last {n})",
        "feedback": "## Feedback from the previous turn",
        "request": "## Request\nCall one tool for the next step. Call finished as soon as the goal is reached.",
        "screenshot": "(The current screenshot is attached)",
        "sensitive": "## Caution\nThis task involves payments or transfers. Call ask_user for the user's consent before confirming any payment, transfer or order.",
    },
}


class PromptBuilder:
    """
    把任务、屏幕快照和历史拼成给模型的用户提示词

    元素按遍历顺序输出，超过 max_elements 时截断并注明剩余数量；
    历史只保留最近 history_window 步。
    """

    def __init__(self, max_elements: int = 40, history_window: int = 6, lang: str = "cn"):
        self.max_elements = max_elements
        self.history_window = history_window
        self.labels = LABELS["en" if lang == "en" else "cn"]

    def render_elements(self, screen: ScreenState, describe_enabled: bool = True) -> str:
        t = self.labels
        if not screen.elements:
            return t["no_elements"] if describe_enabled else t["no_elements_plain"]

        shown = screen.elements[: self.max_elements]
        lines = [elem.to_description() for elem in shown]
        hidden = len(screen.elements) - len(shown)
        if hidden > 0:
            lines.append(t["truncated"].format(n=hidden))
        return "\n".join(lines)

    def render_history(self, history: Sequence[Step]) -> List[str]:
        recent = list(history)[-self.history_window:] if self.history_window > 0 else []
        return [step.to_history_line() for step in recent]

    @staticmethod
    def latest_description(history: Sequence[Step]) -> Optional[str]:
        """最近一步如果是屏幕描述，取出描述文本"""
        if history and isinstance(history[-1].action, DescribeScreen) and history[-1].success:
            return history[-1].message
        return None

    def build(
        self,
        task: str,
        screen: ScreenState,
        history: Sequence[Step] = (),
        feedback: Optional[str] = None,
        describe_enabled: bool = True,
        with_screenshot: bool = False,
        sensitive: bool = False,
    ) -> str:
        t = self.labels
        sections = [t["task"], task, ""]
        if sensitive:
            sections.extend([t["sensitive"], ""])

        sections.append(t["state"])
        sections.append(f"{t['app']}: {screen.package_name or t['unknown_app']}")
        if screen.activity_name:
            sections.append(f"{t['page']}: {screen.activity_name.split('.')[-1]}")
        if with_screenshot:
            sections.append(t["screenshot"])
        sections.append("")

        sections.append(t["elements"])
        sections.append(self.render_elements(screen, describe_enabled))
        sections.append("")

        description = self.latest_description(history)
        if description:
            sections.append(t["vision"])
            sections.append(description[:800])
            sections.append("")

        history_lines = self.render_history(history)
        if history_lines:
            sections.append(t["history"].format(n=len(history_lines)))
            sections.extend(history_lines)
            sections.append("")

        if feedback:
            sections.append(t["feedback"])
            sections.append(feedback)
            sections.append("")

        sections.append(t["request"])
        return "\n".join(sections)
