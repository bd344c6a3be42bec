"""Agent 编排器 - 感知 -> 决策 -> 执行 的有界循环

状态机:
    IDLE -> ANALYZING -> 闲聊: EXECUTING -> COMPLETED | FAILED
                      -> 设备控制: [PLANNING] -> EXECUTING(循环) -> COMPLETED | FAILED | WAITING_USER
    EXECUTING <-> PAUSED
取消在每轮开始、采集/决策/执行之后检查，回到 IDLE，不产生完成或失败事件。
"""

import logging
import threading
import time
from typing import List, Optional

from phone_pilot.agent.analyzer import TaskAnalyzer
from phone_pilot.agent.callbacks import AgentCallback
from phone_pilot.agent.trace import TraceLogger
from phone_pilot.backends.registry import BackendRegistry
from phone_pilot.config.settings import Settings
from phone_pilot.dispatch.apps import MappingAppResolver
from phone_pilot.dispatch.dispatcher import ActionDispatcher
from phone_pilot.errors import CapabilityError, DecisionError, PerceptionError, TaskError
from phone_pilot.model.client import DecisionClient
from phone_pilot.perception.adapter import PerceptionAdapter
from phone_pilot.tools.catalog import build_catalog, build_chat_catalog
from phone_pilot.types import (
    ActionDecision,
    AgentAction,
    AgentState,
    AskUser,
    DescribeScreen,
    EmptyDecision,
    ErrorDecision,
    ExecutionResult,
    Failed,
    Finished,
    OpenApp,
    ScreenState,
    Step,
    Task,
    TaskStatus,
    TextDecision,
    describe_action,
)

logger = logging.getLogger(__name__)

STARTABLE_STATES = (AgentState.IDLE, AgentState.COMPLETED, AgentState.FAILED)
PAUSE_POLL_SECONDS = 0.1

QUESTION_MARKERS = ("?", "？", "请问", "请提供")


class _TaskCancelled(Exception):
    """执行线程内部用于展开取消"""


def looks_like_question(text: str) -> bool:
    return any(marker in text for marker in QUESTION_MARKERS)


class AgentOrchestrator:
    """
    Agent 编排器

    一次只运行一个任务；后端、决策客户端等依赖全部由调用方构建后注入。

    Args:
        decision_client: 决策客户端
        registry: 后端注册表
        settings: 运行配置
        dispatcher: 动作派发器，默认按 settings.app_packages 构建
        perception: 感知适配器，默认从 registry 采集
        analyzer: 任务分析器
        callback: 事件回调
        trace: 执行轨迹记录器
    """

    def __init__(
        self,
        decision_client: DecisionClient,
        registry: BackendRegistry,
        settings: Optional[Settings] = None,
        dispatcher: Optional[ActionDispatcher] = None,
        perception: Optional[PerceptionAdapter] = None,
        analyzer: Optional[TaskAnalyzer] = None,
        callback: Optional[AgentCallback] = None,
        trace: Optional[TraceLogger] = None,
    ):
        self.settings = settings or Settings()
        self.decision_client = decision_client
        self.registry = registry
        # 默认派发器的等待可被 cancel 打断
        self.dispatcher = dispatcher or ActionDispatcher(
            MappingAppResolver(self.settings.app_packages), sleep=self._wait
        )
        self.perception = perception or PerceptionAdapter(registry)
        self.analyzer = analyzer or TaskAnalyzer(self.dispatcher.app_resolver.known_names())
        self.callback = callback or AgentCallback()
        self.trace = trace

        self.catalog = build_catalog(self.settings.enable_describe_screen, self.settings.language)
        self.chat_catalog = build_chat_catalog(self.settings.language)

        self._lock = threading.Lock()
        self._state = AgentState.IDLE
        self._cancel_event = threading.Event()
        self._resume_event = threading.Event()
        self._resume_event.set()
        self._thread: Optional[threading.Thread] = None

        self.task: Optional[Task] = None
        self.state_history: List[AgentState] = [AgentState.IDLE]
        self.iterations = 0
        self._consecutive_failures = 0

    # ==================== 状态 ====================

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state not in STARTABLE_STATES and self._state != AgentState.WAITING_USER

    @property
    def is_paused(self) -> bool:
        return self._state == AgentState.PAUSED

    def _set_state(self, state: AgentState) -> None:
        with self._lock:
            if self._state == state:
                return
            task = self._switch_locked(state)
        logger.debug("状态切换: %s", state.value)
        if task is not None:
            self.callback.on_state_changed(state, task)

    # ==================== 任务入口 ====================

    def _begin(self, user_input: str) -> Task:
        with self._lock:
            if self._state not in STARTABLE_STATES:
                raise RuntimeError(f"已有任务在执行 (状态: {self._state.value})")
            self._cancel_event.clear()
            self._resume_event.set()
            self._consecutive_failures = 0
            self.iterations = 0
            self.task = Task(user_input=user_input)
            self.state_history = [AgentState.IDLE]
            # 持锁切到 ANALYZING，执行线程启动前第二个任务就会被拒绝
            task = self._switch_locked(AgentState.ANALYZING)
        self.callback.on_state_changed(AgentState.ANALYZING, task)
        return task

    def run_task(self, user_input: str) -> Task:
        """在当前线程执行任务，返回结束时的任务对象"""
        task = self._begin(user_input)
        self._run(task)
        return task

    def start_task(self, user_input: str) -> Optional[Task]:
        """在后台线程执行任务；已有任务在执行时返回 None"""
        try:
            task = self._begin(user_input)
        except RuntimeError as e:
            logger.warning("%s", e)
            return None
        self._thread = threading.Thread(
            target=self._run, args=(task,), name="phone-pilot-agent", daemon=True
        )
        self._thread.start()
        return task

    def wait(self, timeout: Optional[float] = None) -> bool:
        """等待后台任务结束，返回是否已结束"""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def answer(self, user_answer: str, blocking: bool = False) -> Optional[Task]:
        """回答模型的提问：原始任务 + 用户回答 作为新任务重新提交"""
        with self._lock:
            if self._state != AgentState.WAITING_USER or self.task is None:
                logger.warning("当前没有等待回答的问题")
                return None
            original = self.task.user_input
            self._switch_locked(AgentState.IDLE)

        combined = f"{original}\n用户回答: {user_answer.strip()}"
        if blocking:
            return self.run_task(combined)
        return self.start_task(combined)

    # ==================== 控制 ====================

    def _switch_locked(self, state: AgentState) -> Optional[Task]:
        """调用方已持有锁"""
        self._state = state
        self.state_history.append(state)
        if self.task is not None and state != AgentState.IDLE:
            self.task.status = TaskStatus(state.value)
        return self.task

    def pause(self) -> bool:
        """暂停：当前这一轮执行完后，在下一轮开始前阻塞直到 resume 或 cancel"""
        with self._lock:
            if self._state != AgentState.EXECUTING:
                return False
            self._resume_event.clear()
            task = self._switch_locked(AgentState.PAUSED)
        logger.info("任务已暂停")
        if task is not None:
            self.callback.on_state_changed(AgentState.PAUSED, task)
        return True

    def resume(self) -> bool:
        with self._lock:
            if self._state != AgentState.PAUSED:
                return False
            self._resume_event.set()
            task = self._switch_locked(AgentState.EXECUTING)
        logger.info("任务已恢复")
        if task is not None:
            self.callback.on_state_changed(AgentState.EXECUTING, task)
        return True

    def cancel(self) -> None:
        """请求取消；执行线程在下一个检查点回到 IDLE"""
        with self._lock:
            state = self._state
            if state == AgentState.WAITING_USER:
                self._switch_locked(AgentState.IDLE)
                if self.task is not None:
                    self.task.status = TaskStatus.CANCELLED
                return
            if state in STARTABLE_STATES:
                return
            self._cancel_event.set()
            self._resume_event.set()
        logger.info("已请求取消任务")

    def release(self) -> None:
        """取消任务并释放所有后端"""
        self.cancel()
        self.wait(timeout=5)
        self.registry.release()

    def _check_cancel(self) -> None:
        if self._cancel_event.is_set():
            raise _TaskCancelled()

    def _wait(self, seconds: float) -> None:
        if seconds > 0 and self._cancel_event.wait(seconds):
            raise _TaskCancelled()

    def _pause_gate(self) -> None:
        while not self._resume_event.wait(PAUSE_POLL_SECONDS):
            self._check_cancel()
        self._check_cancel()

    # ==================== 执行 ====================

    def _run(self, task: Task) -> None:
        try:
            if self.trace:
                self.trace.start_task(task)
            self._execute(task)
        except _TaskCancelled:
            self._on_cancelled(task)
        except TaskError as e:
            self._fail(task, str(e))
        except Exception as e:
            logger.exception("任务执行异常")
            self._fail(task, f"执行出错: {e}")
        finally:
            if self.trace:
                self.trace.finish_task(task)

    def _execute(self, task: Task) -> None:
        analysis = self.analyzer.analyze(task.user_input)
        logger.info(
            "任务分析: 闲聊=%s 目标应用=%s 敏感=%s",
            analysis.is_simple_chat, analysis.target_app, analysis.requires_confirmation,
        )
        self._check_cancel()

        if analysis.is_simple_chat:
            self._run_chat(task)
            return

        try:
            self._require_backend()
        except CapabilityError as e:
            logger.warning("%s，切换到对话模式", e)
            self.callback.on_progress(f"{e}，切换到对话模式")
            self._run_chat(task)
            return

        if analysis.target_app:
            self._set_state(AgentState.PLANNING)
            self._open_target_app(task, analysis.target_app)

        self._set_state(AgentState.EXECUTING)
        self._loop(task, sensitive=analysis.requires_confirmation)

    def _require_backend(self) -> None:
        if not self.registry.has_available():
            raise CapabilityError("没有可用的设备控制后端")

    def _run_chat(self, task: Task) -> None:
        """单轮决策，不操作设备"""
        self._set_state(AgentState.EXECUTING)
        decision = self.decision_client.decide(
            task.user_input, ScreenState.empty("chat"), [], self.chat_catalog
        )
        self._check_cancel()

        if isinstance(decision, ActionDecision):
            action = decision.action
            if isinstance(action, Finished):
                self._complete(task, action.message)
            elif isinstance(action, Failed):
                raise TaskError(action.message)
            else:
                self._fail(task, f"对话模式不支持 {action.kind.value}")
        elif isinstance(decision, TextDecision):
            self._complete(task, decision.text)
        elif isinstance(decision, EmptyDecision):
            self._fail(task, "模型没有返回内容")
        elif isinstance(decision, ErrorDecision):
            self._fail(task, decision.message)
        else:
            raise TypeError(f"未知决策类型: {type(decision).__name__}")

    def _open_target_app(self, task: Task, app: str) -> None:
        self._check_cancel()
        action = OpenApp(app=app, description=f"打开{app}")
        self.callback.on_step_started(len(task.history) + 1, action)
        result = self.dispatcher.execute(action, self.registry)
        self._record_step(task, "", action, result)
        self._count(result.success)
        self._check_cancel()
        if result.success:
            self._wait(self.settings.app_launch_delay)

    def _loop(self, task: Task, sensitive: bool = False) -> None:
        max_steps = self.settings.max_steps
        feedback: Optional[str] = None
        last_was_describe = False

        for iteration in range(1, max_steps + 1):
            self._check_cancel()
            self._pause_gate()
            self.iterations = iteration
            self.callback.on_progress(f"第 {iteration}/{max_steps} 轮")

            try:
                screen = self.perception.capture()
            except PerceptionError as e:
                logger.warning("屏幕采集失败，使用空快照: %s", e)
                screen = ScreenState.empty()
            self._check_cancel()

            decision = self.decision_client.decide(
                task.user_input, screen, task.history, self.catalog, feedback, sensitive=sensitive
            )
            self._check_cancel()
            feedback = None

            if isinstance(decision, ActionDecision):
                action = decision.action
                if isinstance(action, Finished):
                    self._complete(task, action.message)
                    return
                if isinstance(action, Failed):
                    raise TaskError(action.message)
                if isinstance(action, AskUser):
                    self._ask(task, action.question, list(action.options))
                    return

                if isinstance(action, DescribeScreen):
                    if last_was_describe:
                        result = ExecutionResult.fail("describe_screen 不能连续调用，请根据已有描述执行操作")
                        feedback = result.error_message
                    else:
                        result = self._describe(screen, action)
                    last_was_describe = True
                else:
                    last_was_describe = False
                    self.callback.on_step_started(len(task.history) + 1, action)
                    result = self.dispatcher.execute(action, self.registry)
                    if not result.success:
                        feedback = f"上一步 {describe_action(action)} 失败: {result.error_message}"

                self._record_step(task, screen.summary(), action, result, screen, decision.reasoning)
                self._count(result.success)

            elif isinstance(decision, TextDecision):
                last_was_describe = False
                if looks_like_question(decision.text):
                    self._ask(task, decision.text[:300], [])
                    return
                logger.warning("模型返回了文本而不是工具调用: %s", decision.text[:100])
                self._count(False)
                feedback = "上一轮没有调用工具。请只通过工具调用执行下一步操作。"

            elif isinstance(decision, EmptyDecision):
                last_was_describe = False
                self._count(False)
                feedback = "上一轮模型没有返回任何内容，请调用一个工具。"

            elif isinstance(decision, ErrorDecision):
                last_was_describe = False
                self._count(False)
                feedback = f"上一轮决策出错: {decision.message}。请检查工具名和参数后重新调用。"

            else:
                raise TypeError(f"未知决策类型: {type(decision).__name__}")

            limit = self.settings.max_consecutive_failures
            if self._consecutive_failures >= limit:
                last_error = feedback or "操作失败"
                self._fail(task, f"连续 {limit} 次操作失败，任务终止: {last_error}")
                return

            self._check_cancel()
            self._wait(self.settings.step_delay)

        self._fail(task, f"超过最大执行步数 ({max_steps})")

    def _describe(self, screen: ScreenState, action: DescribeScreen) -> ExecutionResult:
        try:
            description = self.decision_client.describe_screen(screen.screenshot, action.focus or None)
        except DecisionError as e:
            logger.warning("屏幕描述失败: %s", e)
            return ExecutionResult.fail(f"屏幕描述失败: {e}")
        return ExecutionResult.ok(description)

    def _count(self, success: bool) -> None:
        if success:
            self._consecutive_failures = 0
        else:
            self._consecutive_failures += 1

    def _record_step(
        self,
        task: Task,
        screen_summary: str,
        action: AgentAction,
        result: ExecutionResult,
        screen: Optional[ScreenState] = None,
        reasoning: Optional[str] = None,
    ) -> Step:
        step = Step(
            number=len(task.history) + 1,
            screen_before=screen_summary,
            action=action,
            success=result.success,
            message=result.message,
            error_message=result.error_message,
        )
        task.add_step(step)
        logger.info(step.to_history_line())
        self.callback.on_step_completed(step)
        if self.trace:
            self.trace.log_step(step, screen, reasoning)
        return step

    # ==================== 结束 ====================

    def _finish(self, task: Task, state: AgentState) -> None:
        task.finished_at = task.finished_at or time.time()
        self._set_state(state)

    def _complete(self, task: Task, message: str) -> None:
        task.result = message or "任务完成"
        self._finish(task, AgentState.COMPLETED)
        logger.info("任务完成: %s", task.result)
        self.callback.on_task_completed(task)

    def _fail(self, task: Task, message: str) -> None:
        task.result = message
        self._finish(task, AgentState.FAILED)
        logger.warning("任务失败: %s", message)
        self.callback.on_task_failed(task)

    def _ask(self, task: Task, question: str, suggestions: List[str]) -> None:
        task.question = question
        task.suggestions = suggestions
        self._finish(task, AgentState.WAITING_USER)
        logger.info("等待用户回答: %s", question)
        self.callback.on_question(question, suggestions)

    def _on_cancelled(self, task: Task) -> None:
        task.status = TaskStatus.CANCELLED
        task.finished_at = task.finished_at or time.time()
        self._set_state(AgentState.IDLE)
        logger.info("任务已取消，已执行 %d 步", task.step_count)
