"""Configuration and system prompts."""

from phone_pilot.config import prompts_en, prompts_zh
from phone_pilot.config.settings import (
    ProviderSettings,
    Settings,
    load_settings,
    save_settings,
)


def _prompts(lang: str):
    return prompts_en if lang == "en" else prompts_zh


def get_system_prompt(lang: str = "cn", describe_screen: bool = True) -> str:
    """
    Get system prompt by language.

    Args:
        lang: Language code, 'cn' for Chinese, 'en' for English.
        describe_screen: Whether the describe_screen tool is offered.
    """
    return _prompts(lang).get_system_prompt(describe_screen)


def get_chat_prompt(lang: str = "cn") -> str:
    return _prompts(lang).get_chat_prompt()


def get_vision_prompt(lang: str = "cn") -> str:
    return _prompts(lang).VISION_DESCRIBE_PROMPT


__all__ = [
    "ProviderSettings",
    "Settings",
    "load_settings",
    "save_settings",
    "get_system_prompt",
    "get_chat_prompt",
    "get_vision_prompt",
]
