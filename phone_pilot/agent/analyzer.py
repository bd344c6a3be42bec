"""任务分析 - 判断是否闲聊、提取目标应用"""

from dataclasses import dataclass
from typing import Iterable, Optional

CHAT_KEYWORDS = ("你好", "谢谢", "再见", "什么是", "介绍一下", "hello", "thanks", "what is")
CHAT_MAX_LENGTH = 20

SENSITIVE_KEYWORDS = (
    "支付", "付款", "转账", "打款", "汇款", "收款码", "付款码",
    "红包", "提现", "充值", "购买", "下单", "结算",
)


@dataclass
class TaskAnalysis:
    original_task: str
    is_simple_chat: bool
    target_app: Optional[str] = None
    requires_confirmation: bool = False


class TaskAnalyzer:
    """基于规则的任务分类，不调用模型"""

    def __init__(self, app_names: Iterable[str] = ()):
        # 长名字优先，“企业微信”不会被“微信”截胡
        self.app_names = sorted({n for n in app_names if n}, key=len, reverse=True)

    def is_simple_chat(self, task: str) -> bool:
        text = task.strip().lower()
        if not text:
            return True
        if text.startswith(("?", "？")):
            return True
        return len(text) < CHAT_MAX_LENGTH and any(k in text for k in CHAT_KEYWORDS)

    def extract_target_app(self, task: str) -> Optional[str]:
        lowered = task.lower()
        for name in self.app_names:
            if name.lower() in lowered:
                return name
        return None

    def analyze(self, task: str) -> TaskAnalysis:
        simple = self.is_simple_chat(task)
        return TaskAnalysis(
            original_task=task,
            is_simple_chat=simple,
            target_app=None if simple else self.extract_target_app(task),
            requires_confirmation=any(k in task for k in SENSITIVE_KEYWORDS),
        )
