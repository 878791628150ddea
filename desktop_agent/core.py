"""桌面自动化智能体核心类：截屏 → 分析 → 规划 → 执行/验证/重试 → 更新状态"""

import asyncio
import json
import queue
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

from openai import OpenAIError

from .actuators import InputDevice
from .console import SET_INSTRUCTION, STOP, Command
from .controller import Controller
from .memory import COMPLETED, IN_PROGRESS, PAUSED, TASK_DONE, IterationStore, TaskState
from .models import ActionError, ScreenAnalysis, action_type_of, parse_action
from .parsing import parse_action_plan
from .perception import Screens
from .planner import Planner, create_client
from .verifier import MAX_RETRIES, RetryController

IDLE_POLL_SECONDS = 0.1
ITERATION_PAUSE_SECONDS = 0.5
PAUSE_COOLDOWN_SECONDS = 5.0

# 这两类动作执行即成功，不进入验证/重试
UNVERIFIED_ACTIONS = ("wait", "task_done")


class DesktopAgent:
    """桌面自动化智能体"""

    def __init__(self, planner: Planner, device, screens, store: IterationStore,
                 sleep: Callable[[float], None] = time.sleep,
                 wait: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 self_instruct: bool = False,
                 cooldown: float = PAUSE_COOLDOWN_SECONDS):
        self.planner = planner
        self.screens = screens
        self.store = store
        self.self_instruct = self_instruct
        self.cooldown = cooldown
        self.controller = Controller(device, sleep, wait)
        self.retry = RetryController(self.controller, wait=wait)
        self.screen_size = device.screen_size()

        self.commands: "queue.Queue[Command]" = queue.Queue()
        self.running = True
        self.idle = True
        self.instruction = ""
        self._new_instruction = False

    @classmethod
    def from_settings(cls, settings) -> "DesktopAgent":
        """按配置创建所有依赖；输入后端或显示器初始化失败会直接抛出"""
        client = create_client(settings.api_key, settings.api_base)
        planner = Planner(client, settings.model_name, settings.max_tokens)
        device = InputDevice()
        screens = Screens(settings.resize_factor)
        screens.report()
        agent = cls(
            planner,
            device,
            screens,
            IterationStore(settings.iterations_dir),
            self_instruct=settings.self_instruct,
        )
        width, height = agent.screen_size
        print(f"Screen dimensions: {width}x{height}")
        return agent

    def handle_commands(self):
        """处理控制台发来的全部待处理命令"""
        while True:
            try:
                command = self.commands.get_nowait()
            except queue.Empty:
                return

            if command.kind == STOP:
                self.running = False
            elif command.kind == SET_INSTRUCTION:
                self.instruction = command.instruction or ""
                self._new_instruction = True
                self.idle = False

    async def run(self, console=None):
        """
        主循环。

        空闲时每 100ms 轮询一次命令；收到 stop 后在当前迭代结束时退出，
        不会中断正在进行的 LLM 调用或动作序列。
        """
        if console is not None:
            console.start()

        while True:
            self.handle_commands()
            if not self.running:
                break
            if self.idle:
                await asyncio.sleep(IDLE_POLL_SECONDS)
                continue

            try:
                await self.run_iteration()
            except OpenAIError as e:
                print(f"❌ 调用 LLM 失败: {e}，本轮迭代放弃")
            except OSError as e:
                print(f"❌ 读写迭代记录失败: {e}，本轮迭代放弃")

            await asyncio.sleep(ITERATION_PAUSE_SECONDS)

        if console is not None:
            console.join(timeout=1.0)
        print("\n✓ Agent 已停止")

    def prepare_state(self) -> TaskState:
        """读取最近一次保存的任务状态，并根据新指令决定是否开启新任务"""
        state = self.store.load_latest_state()

        if self._new_instruction:
            self._new_instruction = False
            if state is None or state.status != IN_PROGRESS:
                print(f"[Agent] 开始新任务: {self.instruction}")
                return TaskState(instruction=self.instruction)
            state.instruction = self.instruction
            return state

        if state is None:
            return TaskState(instruction=self.instruction)

        if state.status == PAUSED:
            print("[状态] 冷却结束，恢复任务")
            state.set_status(IN_PROGRESS)
        return state

    async def run_iteration(self) -> TaskState:
        """执行一轮完整迭代，返回本轮结束时的任务状态"""
        start = time.monotonic()
        iteration_dir = self.store.new_iteration()
        images = self.screens.capture(iteration_dir)
        print(f"[Agent] 截屏与编码耗时 {time.monotonic() - start:.2f}s")

        start = time.monotonic()
        state = self.prepare_state()

        if state.status in (TASK_DONE, COMPLETED):
            print(f"[状态] 任务处于 '{state.status}' 状态，等待新指令...")
            self.idle = True
            state.save(iteration_dir)
            return state

        state.save(iteration_dir)

        messages = self.planner.build_messages(self.instruction, state, images, self.screen_size)
        analysis, analysis_text = await self.planner.analyze(messages)
        self.store.write_text(iteration_dir, "analysis.json", analysis_text)
        state.analysis = ScreenAnalysis.from_dict(analysis)

        plan_text = await self.planner.plan(messages, analysis, self.instruction)
        self.store.write_text(iteration_dir, "actions.json", plan_text)

        if self.self_instruct and state.status != COMPLETED:
            refined = await self.planner.refine_instruction(self.instruction, state)
            if refined:
                print(f"[LLM] 新指令: {refined}")
                self.instruction = refined

        actions = parse_action_plan(plan_text)
        if actions is not None:
            await self.execute_plan(actions, state, iteration_dir)
        else:
            print("⚠ 跳过本轮动作计划")

        # 修复失败时落盘的是原文，状态机使用替换后的分析对象
        serialized = json.dumps(analysis, ensure_ascii=False)
        state.update(serialized, plan_text)
        if state.status == IN_PROGRESS:
            if state.is_complete(serialized):
                print(f"\n✓✓✓ 任务在 {state.attempts} 次尝试后完成 ✓✓✓")
                state.set_status(COMPLETED)
                self.idle = True
            elif state.should_pause():
                print("⚠ 尝试次数过多或检测到重复失败，暂停任务")
                state.set_status(PAUSED)
        state.save(iteration_dir)

        print(f"[Agent] 动作耗时 {time.monotonic() - start:.2f}s")

        if state.status == PAUSED:
            await asyncio.sleep(self.cooldown)
        return state

    async def execute_plan(self, actions: List[Any], state: TaskState,
                     iteration_dir: Optional[Path] = None):
        """按顺序执行动作，每个动作验证（含重试）完成后才执行下一个"""
        for raw in actions:
            try:
                action = parse_action(raw)
            except ActionError:
                action = raw

            result = await self.controller.execute(action, state)
            if result.success and action_type_of(action) not in UNVERIFIED_ACTIONS:
                result = await self.retry.run(action, result, state.analysis)

            if not result.success:
                print(f"❌ 动作失败: {result.error_message}")
                if result.retry_count >= MAX_RETRIES:
                    print(f"⚠ 动作 {result.action_type} 重试次数过多，暂停任务")
                    state.set_status(PAUSED)
                    if iteration_dir is not None:
                        state.save(iteration_dir)
                    return

            if state.status == TASK_DONE:
                self.idle = True
                if iteration_dir is not None:
                    state.save(iteration_dir)
                return
