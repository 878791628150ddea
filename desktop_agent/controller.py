"""执行模块：把 LLM 规划的动作转换为键盘鼠标输入"""

import asyncio
import time
from typing import Any, Awaitable, Callable

from .actuators import InputError, Keyboard, Mouse
from .models import (
    ActionError,
    ActionResult,
    KeyCombination,
    KeyPress,
    MouseClick,
    MouseMove,
    TaskDone,
    TextInput,
    Wait,
    WindowFocus,
    action_type_of,
    parse_action,
)

FOCUS_SETTLE_SECONDS = 0.5


class Controller:
    """执行模块：执行 LLM 决策的动作"""

    def __init__(self, device, sleep: Callable[[float], None] = time.sleep,
                 wait: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.device = device
        # sleep 用于组合键内部的短间隔，wait 用于动作之间的等待
        self.sleep = sleep
        self.wait = wait
        self.keyboard = Keyboard(device, sleep)
        self.mouse = Mouse(device)

    async def execute(self, raw: Any, task_state) -> ActionResult:
        """
        执行单个动作，返回结果并追加到 task_state 的结果日志。

        raw 可以是 LLM 给出的原始 dict，也可以是已解析的动作。
        参数错误与注入错误都记录为失败结果，不会抛出。
        """
        result = ActionResult(action_type_of(raw))

        try:
            action = raw if hasattr(raw, "kind") else parse_action(raw)
        except ActionError as e:
            print(f"❌ 参数错误: {e}")
            result.mark_error(str(e))
            task_state.add_action_result(result)
            return result

        try:
            await self._dispatch(action, task_state)
            result.mark_success()
        except InputError as e:
            print(f"❌ 输入注入失败: {e}")
            result.mark_error(str(e))

        task_state.add_action_result(result)
        return result

    def focus_window(self, method: str):
        """按 method 切换窗口；未知 method 不做任何输入"""
        if method == "alt_tab":
            self.keyboard.alt_tab()
        elif method == "super_tab":
            self.keyboard.super_tab()
        else:
            print(f"⚠ 未知窗口切换方式: {method}")

    async def _dispatch(self, action, task_state):
        if isinstance(action, WindowFocus):
            self.focus_window(action.method)
            print(f"✓ 聚焦窗口: {action.title} ({action.window_class}) 方式 {action.method}")
            await self.wait(FOCUS_SETTLE_SECONDS)

        elif isinstance(action, MouseMove):
            self.mouse.move_to(action.x, action.y)
            print(f"✓ 移动鼠标到 ({action.x}, {action.y})")

        elif isinstance(action, MouseClick):
            if action.x is not None and action.y is not None:
                self.mouse.move_to(action.x, action.y)
            self.mouse.click(action.button)
            print(f"✓ 点击鼠标 {action.button} 键")

        elif isinstance(action, KeyPress):
            self.keyboard.press_key(action.key)
            print(f"✓ 按键 {action.key}")

        elif isinstance(action, KeyCombination):
            self.keyboard.press_key_combination(action.keys)
            print(f"✓ 组合键 {'+'.join(action.keys)}")

        elif isinstance(action, TextInput):
            self.keyboard.type_text(action.text)
            print(f"✓ 输入文本 '{action.text}'")

        elif isinstance(action, Wait):
            await self.wait(max(action.ms, 0) / 1000)
            print(f"✓ 等待 {action.ms}ms")

        elif isinstance(action, TaskDone):
            task_state.set_task_done()
            print(f"✓ 任务完成，原因: {action.reason}")
