"""
配置管理模块
管理模型服务、设备后端和执行循环的参数，由调用方在任务开始前注入
"""
import json
import logging
import os
from dataclasses import dataclass, asdict, field
from typing import Dict, Optional

import yaml

logger = logging.getLogger(__name__)

PROVIDER_SILICONFLOW = "siliconflow"
PROVIDER_OPENAI = "openai"
PROVIDER_ANTHROPIC = "anthropic"
PROVIDER_CUSTOM = "custom"

PROVIDER_DEFAULTS = {
    PROVIDER_SILICONFLOW: ("https://api.siliconflow.cn/v1", "Qwen/Qwen3-VL-235B-A22B-Instruct"),
    PROVIDER_OPENAI: ("https://api.openai.com/v1", "gpt-4o"),
    PROVIDER_ANTHROPIC: ("https://api.anthropic.com/v1", "claude-3-5-sonnet-20241022"),
    PROVIDER_CUSTOM: ("http://localhost:8000/v1", ""),
}

ENV_PREFIX = "PHONE_PILOT_"


@dataclass
class ProviderSettings:
    """单个模型服务的配置"""
    provider: str = PROVIDER_SILICONFLOW
    base_url: str = ""
    api_key: str = ""
    model: str = ""
    max_tokens: int = 4096
    temperature: float = 0.7
    timeout: float = 120.0

    def __post_init__(self):
        if self.provider not in PROVIDER_DEFAULTS:
            raise ValueError(f"未知的模型服务: {self.provider}")
        default_url, default_model = PROVIDER_DEFAULTS[self.provider]
        if not self.base_url:
            self.base_url = default_url
        if not self.model:
            self.model = default_model
        self.base_url = self.base_url.rstrip("/")

    @classmethod
    def from_dict(cls, data: dict) -> "ProviderSettings":
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        return cls(**{k: v for k, v in data.items() if k in valid_fields})


@dataclass
class Settings:
    """运行配置"""
    # 模型配置
    decision: ProviderSettings = field(default_factory=ProviderSettings)
    vision: Optional[ProviderSettings] = None  # 为空时复用 decision

    # 循环控制
    max_steps: int = 20
    step_delay: float = 0.5
    max_consecutive_failures: int = 3
    app_launch_delay: float = 1.5

    # 感知与提示词
    use_vision: bool = False
    enable_describe_screen: bool = True
    history_window: int = 6
    max_prompt_elements: int = 40
    language: str = "cn"

    # 设备配置
    device_id: Optional[str] = None
    adb_path: str = ""
    accessibility_url: Optional[str] = None

    # 应用名 -> 包名 额外映射
    app_packages: Dict[str, str] = field(default_factory=dict)

    trace_dir: Optional[str] = None
    verbose: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        # 过滤掉不存在的字段
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_data = {k: v for k, v in data.items() if k in valid_fields}

        if isinstance(filtered_data.get("decision"), dict):
            filtered_data["decision"] = ProviderSettings.from_dict(filtered_data["decision"])
        if isinstance(filtered_data.get("vision"), dict):
            filtered_data["vision"] = ProviderSettings.from_dict(filtered_data["vision"])
        return cls(**filtered_data)


def apply_env_overrides(settings: Settings, environ: Optional[dict] = None) -> Settings:
    """用环境变量覆盖决策模型配置"""
    env = os.environ if environ is None else environ
    decision = asdict(settings.decision)
    overrides = {
        "provider": env.get(f"{ENV_PREFIX}PROVIDER"),
        "base_url": env.get(f"{ENV_PREFIX}BASE_URL"),
        "api_key": env.get(f"{ENV_PREFIX}API_KEY"),
        "model": env.get(f"{ENV_PREFIX}MODEL"),
    }
    changed = {k: v for k, v in overrides.items() if v}
    if not changed:
        return settings

    if "provider" in changed and changed["provider"] != decision["provider"]:
        # 换了服务商时，未显式给出的地址和模型回到该服务商的默认值
        decision["base_url"] = ""
        decision["model"] = ""
    decision.update(changed)
    settings.decision = ProviderSettings.from_dict(decision)
    logger.debug("环境变量覆盖模型配置: %s", sorted(changed))
    return settings


def load_settings(path: Optional[str] = None, use_env: bool = True) -> Settings:
    """加载设置，支持 JSON 和 YAML 文件；文件不存在时使用默认值"""
    data: dict = {}
    if path:
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith((".yaml", ".yml")):
                    data = yaml.safe_load(f) or {}
                else:
                    data = json.load(f)
        except FileNotFoundError:
            logger.warning("配置文件不存在，使用默认配置: %s", path)

    settings = Settings.from_dict(data)
    if use_env:
        settings = apply_env_overrides(settings)
    return settings


def save_settings(settings: Settings, path: str):
    """保存设置"""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings.to_dict(), f, ensure_ascii=False, indent=2)
