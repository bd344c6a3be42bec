#!/usr/bin/env python3
"""
phone_pilot 运行入口

使用示例:
    python -m phone_pilot.run "打开设置，查看 WLAN 列表"
    python -m phone_pilot.run --config config.yaml --verbose "打开微信"
    PHONE_PILOT_API_KEY=sk-xxx phone-pilot "今天天气怎么样？"
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from phone_pilot.agent import AgentCallback, AgentOrchestrator, TraceLogger
from phone_pilot.backends import AccessibilityBridgeBackend, ADBHelper, AdbBackend, BackendRegistry
from phone_pilot.config import Settings, load_settings
from phone_pilot.model import DecisionClient, PromptBuilder, create_provider
from phone_pilot.types import AgentAction, AgentState, Step, Task, describe_action
from phone_pilot.utils import setup_logging


class ConsoleCallback(AgentCallback):
    """把执行过程打印到终端"""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def on_state_changed(self, state: AgentState, task: Task) -> None:
        if self.verbose:
            print(f"[状态] {state.value}")

    def on_step_started(self, step_number: int, action: AgentAction) -> None:
        print(f"\n步骤 {step_number}: {describe_action(action)}")

    def on_step_completed(self, step: Step) -> None:
        status = "✓" if step.success else "✗"
        detail = step.error_message or step.message
        print(f"  {status} {detail[:200]}" if detail else f"  {status}")

    def on_progress(self, message: str) -> None:
        if self.verbose:
            print(f"[进度] {message}")

    def on_question(self, question: str, suggestions: List[str]) -> None:
        print(f"\n需要你的回答: {question}")
        for i, option in enumerate(suggestions, 1):
            print(f"  {i}. {option}")


def build_registry(settings: Settings) -> BackendRegistry:
    registry = BackendRegistry()
    if settings.accessibility_url:
        registry.register(AccessibilityBridgeBackend(settings.accessibility_url))
    registry.register(AdbBackend(ADBHelper(settings.adb_path, settings.device_id)))
    return registry


def build_orchestrator(settings: Settings, callback: Optional[AgentCallback] = None) -> AgentOrchestrator:
    provider = create_provider(settings.decision)
    vision = create_provider(settings.vision) if settings.vision else None
    client = DecisionClient(
        provider,
        vision_provider=vision,
        prompt_builder=PromptBuilder(
            max_elements=settings.max_prompt_elements,
            history_window=settings.history_window,
            lang=settings.language,
        ),
        use_vision=settings.use_vision,
        lang=settings.language,
    )
    trace = TraceLogger(Path(settings.trace_dir)) if settings.trace_dir else None
    return AgentOrchestrator(
        client,
        build_registry(settings),
        settings=settings,
        callback=callback,
        trace=trace,
    )


def _run_until_done(orchestrator: AgentOrchestrator) -> None:
    try:
        while not orchestrator.wait(timeout=0.5):
            pass
    except KeyboardInterrupt:
        print("\n正在取消任务...")
        orchestrator.cancel()
        orchestrator.wait(timeout=30)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="phone_pilot - LLM 驱动的 Android 手机助手")
    parser.add_argument("task", help="任务描述")
    parser.add_argument("--config", "-c", type=str, help="配置文件 (JSON 或 YAML)")
    parser.add_argument("--max-steps", type=int, help="最大步数 (默认: 20)")
    parser.add_argument("--device", "-d", type=str, help="ADB 设备 ID")
    parser.add_argument("--accessibility-url", type=str, help="无障碍桥接服务地址，如 http://127.0.0.1:8765")
    parser.add_argument("--output-dir", "-o", type=str, help="输出目录 (保存截图、执行轨迹)")
    parser.add_argument("--lang", choices=["cn", "en"], help="提示词语言")
    parser.add_argument("--vision", action="store_true", help="决策时附带截图")
    parser.add_argument("--verbose", "-v", action="store_true", help="输出详细日志")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    settings = load_settings(args.config)
    if args.max_steps:
        settings.max_steps = args.max_steps
    if args.device:
        settings.device_id = args.device
    if args.accessibility_url:
        settings.accessibility_url = args.accessibility_url
    if args.output_dir:
        settings.trace_dir = args.output_dir
    if args.lang:
        settings.language = args.lang
    if args.vision:
        settings.use_vision = True
    settings.verbose = settings.verbose or args.verbose

    setup_logging(settings.verbose)

    orchestrator = build_orchestrator(settings, ConsoleCallback(settings.verbose))

    print(f"\n开始执行任务: {args.task}\n")
    task = orchestrator.start_task(args.task)
    try:
        _run_until_done(orchestrator)
        while orchestrator.state == AgentState.WAITING_USER:
            try:
                reply = input("> ").strip()
            except (EOFError, KeyboardInterrupt):
                reply = ""
            if not reply:
                orchestrator.cancel()
                break
            task = orchestrator.answer(reply)
            _run_until_done(orchestrator)
    finally:
        orchestrator.release()

    task = orchestrator.task or task
    if task is None:
        return 1

    print("\n" + "=" * 50)
    print("执行结果")
    print("=" * 50)
    print(f"任务: {task.user_input}")
    print(f"状态: {task.status.value}")
    print(f"消息: {task.result or '-'}")
    print(f"总步数: {task.step_count}")
    print(f"耗时: {task.elapsed_seconds:.1f}秒")

    return 0 if orchestrator.state == AgentState.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
