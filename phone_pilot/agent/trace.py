import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

from phone_pilot.actions.codec import encode
from phone_pilot.types import ScreenState, Step, Task

logger = logging.getLogger(__name__)


class TraceLogger:
    """按任务、按步骤落盘执行轨迹，供回放和排查"""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)
        self.task_dir: Optional[Path] = None

    def start_task(self, task: Task) -> None:
        self.task_dir = self.base_dir / f"task_{task.id}"
        self.task_dir.mkdir(parents=True, exist_ok=True)
        (self.task_dir / "input.txt").write_text(task.user_input, encoding="utf-8")

    def log_step(self, step: Step, screen: Optional[ScreenState] = None, reasoning: Optional[str] = None) -> None:
        if self.task_dir is None:
            return
        step_dir = self.task_dir / f"step_{step.number}"
        step_dir.mkdir(parents=True, exist_ok=True)

        tool_name, arguments = encode(step.action)
        record: Dict[str, Any] = {
            "number": step.number,
            "timestamp": step.timestamp,
            "screen_before": step.screen_before,
            "action": {"tool": tool_name, "arguments": arguments},
            "success": step.success,
            "message": step.message,
            "error_message": step.error_message,
            "reasoning": reasoning,
        }
        if screen is not None:
            record["elements"] = [
                {**asdict(e), "center": list(e.center)} for e in screen.elements
            ]
            if screen.screenshot:
                (step_dir / "before.png").write_bytes(screen.screenshot)

        (step_dir / "step.json").write_text(
            json.dumps(record, ensure_ascii=False, indent=2), encoding="utf-8"
        )

    def finish_task(self, task: Task) -> None:
        if self.task_dir is None:
            return
        summary = {
            "id": task.id,
            "user_input": task.user_input,
            "status": task.status.value,
            "result": task.result,
            "question": task.question,
            "suggestions": task.suggestions,
            "step_count": task.step_count,
            "elapsed_seconds": round(task.elapsed_seconds, 2),
        }
        (self.task_dir / "task.json").write_text(
            json.dumps(summary, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        logger.info("执行轨迹已保存: %s", self.task_dir)
