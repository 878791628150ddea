"""验证模块：根据屏幕分析判断动作是否生效，并在失败时调整重试"""

import asyncio
from typing import Awaitable, Callable, Optional

from .actuators import InputError
from .models import (
    ActionResult,
    MouseClick,
    MouseMove,
    ScreenAnalysis,
    WindowFocus,
    action_type_of,
)

MAX_RETRIES = 3
RETRY_WAIT_SECONDS = 0.5


class WeakVerificationPolicy:
    """
    弱验证策略。

    只有 window_focus 会对照分析结果中的 active_window 检查；
    鼠标、键盘、文本、等待和 task_done 一律视为成功，
    是否真正生效留给下一轮屏幕分析判断。
    """

    ALWAYS_SUCCEED = frozenset({
        "mouse_move",
        "mouse_click",
        "key_press",
        "key_combination",
        "text_input",
        "wait",
        "task_done",
    })

    @staticmethod
    def can_verify(analysis: Optional[ScreenAnalysis]) -> bool:
        return analysis is not None and analysis.state is not None

    def verify(self, action, analysis: Optional[ScreenAnalysis]) -> ActionResult:
        """
        返回新的验证结果。

        没有 state 信息时返回默认（未成功、无错误）的结果，表示跳过验证。
        """
        action_type = action_type_of(action)
        result = ActionResult(action_type)

        if not self.can_verify(analysis):
            return result

        if isinstance(action, WindowFocus):
            active_window = analysis.state.active_window
            if active_window is None:
                result.mark_error("No active window information available")
            elif action.title.lower() in active_window.lower():
                result.mark_success()
            else:
                result.mark_error(
                    f"Window focus failed. Expected: {action.title}, Got: {active_window}"
                )
        elif action_type in self.ALWAYS_SUCCEED:
            result.mark_success()
        else:
            result.mark_error(f"Unknown action type: {action_type}")

        return result


def nearest_element_center(analysis: Optional[ScreenAnalysis], x: int, y: int):
    """离 (x, y) 最近的 UI 元素中心；距离相同时保留先出现的元素"""
    if analysis is None:
        return None

    closest = None
    min_distance = None
    for element in analysis.ui_elements:
        center = element.center
        if center is None:
            continue
        cx, cy = center
        distance = (cx - x) ** 2 + (cy - y) ** 2
        if min_distance is None or distance < min_distance:
            min_distance = distance
            closest = center
    return closest


class RetryController:
    """有上限的“调整 → 重新验证”循环"""

    def __init__(self, controller, policy: Optional[WeakVerificationPolicy] = None,
                 wait: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 max_retries: int = MAX_RETRIES):
        self.controller = controller
        self.policy = policy or WeakVerificationPolicy()
        self.wait = wait
        self.max_retries = max_retries

    async def run(self, action, result: ActionResult, analysis: Optional[ScreenAnalysis]) -> ActionResult:
        """
        验证刚执行的动作，失败时最多重试 max_retries 次。

        验证结论直接写回 result（即已记入 TaskState 的那一条）。
        无法验证时原样返回执行结果。
        """
        if not self.policy.can_verify(analysis):
            print(f"[验证] 缺少屏幕状态信息，跳过 {result.action_type} 的验证")
            return result

        self._apply(result, self.policy.verify(action, analysis))

        method = action.method if isinstance(action, WindowFocus) else None
        while not result.success and result.retry_count < self.max_retries:
            method = await self.retry(action, result, analysis, method)

        return result

    async def retry(self, action, result: ActionResult, analysis: Optional[ScreenAnalysis],
                    method: Optional[str] = None) -> Optional[str]:
        """
        执行一次调整并重新验证，返回本次使用的窗口切换方式（仅 window_focus 有意义）。
        """
        result.increment_retry()
        print(f"[重试] {result.action_type} 第 {result.retry_count}/{self.max_retries} 次")

        try:
            method = await self._adjust(action, analysis, method)
        except InputError as e:
            print(f"❌ 重试时输入注入失败: {e}")
            result.mark_error(str(e))
            return method

        self._apply(result, self.policy.verify(action, analysis))
        return method

    async def _adjust(self, action, analysis, method):
        if isinstance(action, WindowFocus):
            method = "super_tab" if (method or action.method) == "alt_tab" else "alt_tab"
            print(f"[重试] 改用 {method} 切换窗口")
            self.controller.focus_window(method)
            await self.wait(RETRY_WAIT_SECONDS)
            return method

        if isinstance(action, (MouseMove, MouseClick)):
            if action.x is None or action.y is None:
                return method
            target = nearest_element_center(analysis, action.x, action.y)
            if target is None:
                return method
            print(f"[重试] 鼠标坐标调整为 {target}")
            self.controller.mouse.move_to(*target)
            if isinstance(action, MouseClick):
                self.controller.mouse.click(action.button)
            return method

        await self.wait(RETRY_WAIT_SECONDS)
        return method

    @staticmethod
    def _apply(result: ActionResult, verdict: ActionResult):
        if verdict.success:
            result.mark_success()
        else:
            result.mark_error(verdict.error_message or "Verification failed")
