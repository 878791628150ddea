"""规划模块：调用 LLM 分析屏幕并生成动作计划"""

import json
import platform
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from openai import AsyncOpenAI

from .parsing import parse_analysis, strip_code_fences

ANALYSIS_PROMPT = """GENERATE THE ANALYSIS JSON FOR THE CURRENT STATE.
CURRENT SCREEN INFORMATION:
- Screen dimensions: {width}x{height} pixels
- Coordinate system: (0,0) is at the top-left corner
- High DPI display: Consider scaling factors when calculating coordinates

Analyze the CURRENT screenshot and provide a STRICT JSON response. Your response must be a valid JSON object with EXACTLY these fields:

{{
    "context": string,
    "ui_elements": [
        {{"type": string, "coords": [number, number, number, number]}}
    ],
    "state": {{
        "focused_element": string | null,
        "selected_text": string | null,
        "active_window": string,
        "window_title": string,
        "window_class": string,
        "target_window": string | null
    }},
    "challenges": [string]
}}

IMPORTANT:
1. Response must be ONLY the JSON object, no additional text
2. All coordinates must be within screen bounds, as [left, top, right, bottom]
3. All fields are required
4. Use null for empty values
5. Do not include any explanations or comments in the JSON
6. Always include window_title and window_class for proper window management
7. Set target_window to the window that needs to be focused for the task (e.g., "Chrome" for web tasks)
8. ONLY analyze the CURRENT screenshot"""

PLAN_PROMPT = """Based on this context analysis and the instruction '{instruction}', plan a sequence of actions. Your response must be a STRICT JSON array of actions.
Remember use correct key combinations for the current operating system.
Available Actions (use ONLY these exact formats):
1. Window Focus:
   {{"action": "window_focus", "title": string, "class": string, "method": "alt_tab" | "super_tab"}}
2. Mouse Movement:
   {{"action": "mouse_move", "x": number, "y": number}}
3. Mouse Click:
   {{"action": "mouse_click", "button": "left" | "right" | "middle"}}
   optionally with "x": number, "y": number to move the pointer there before clicking
4. Key Press:
   {{"action": "key_press", "key": "return" | "tab" | "escape"}}
5. Key Combination:
   {{"action": "key_combination", "keys": ["control" | "alt" | "shift" | "meta" | "cmd", string]}}
6. Text Input:
   {{"action": "text_input", "text": string}}
7. Wait:
   {{"action": "wait", "ms": number}}
8. Task Done:
   {{"action": "task_done", "reason": string}}

Guidelines:
1. Response must be ONLY the JSON array, no additional text
2. Each action must follow the exact format shown above
3. Wait times should be between 100-1000ms
4. Mouse coordinates must be within screen bounds
5. Key combinations must include at least one modifier key, the last key must be one of t, w, r, l, a, c, v, x, z
6. Do not include any explanations or comments in the JSON
7. ALWAYS start with window_focus action if the target window is not already active
8. Add a wait after window_focus to ensure the window is ready
9. Use super_tab for window switching if alt_tab doesn't work
10. Use task_done when the instruction has been fully accomplished

Example valid response:
[
    {{"action": "window_focus", "title": "Google Chrome", "class": "chrome", "method": "super_tab"}},
    {{"action": "wait", "ms": 500}},
    {{"action": "key_combination", "keys": ["control", "t"]}},
    {{"action": "wait", "ms": 500}},
    {{"action": "text_input", "text": "google.com"}},
    {{"action": "wait", "ms": 200}},
    {{"action": "key_press", "key": "return"}}
]"""

REFINE_PROMPT = """Based on the following feedback, generate a refined instruction to achieve the original goal: '{instruction}'

Feedback from last attempt: {feedback}

Current Task State:
- Status: {status}
- Attempts: {attempts}
- Last Action: {last_action}
- Memory: {memory}

Generate a new instruction that:
1. Addresses the feedback from previous attempts
2. Maintains the original goal
3. Is clear and specific
4. Focuses on overcoming identified challenges

Response should be ONLY the new instruction, no additional text."""


def format_state_context(instruction: str, task_state) -> str:
    """把任务状态写成给 LLM 看的文本"""
    return (
        "TASK STATE:\n"
        f"- Instruction: {instruction}\n"
        f"- Status: {task_state.status}\n"
        f"- Attempts: {task_state.attempts}\n"
        f"- Last Action: {task_state.last_action}\n"
        f"- Memory: {json.dumps(task_state.memory, ensure_ascii=False)}\n"
        f"- Feedback: {json.dumps(task_state.feedback, ensure_ascii=False)}"
    )


class Planner:
    """规划模块：一轮迭代内依次完成屏幕分析、动作规划两次调用"""

    def __init__(self, client: AsyncOpenAI, model: str, max_tokens: int = 512):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    def system_message(self) -> Dict[str, Any]:
        content = (
            "You are a task automation agent.\n"
            "You will be given a task to complete.\n"
            "You will need to analyze the current state of the task and plan a sequence of actions to complete the task.\n"
            f"The current timestamp is: {datetime.now().strftime('%Y%m%d_%H%M%S')}\n"
            f"The current operating system is: {platform.system()}"
        )
        return {"role": "system", "content": content}

    def build_messages(self, instruction: str, task_state, images: List[str],
                       screen_size: Tuple[int, int]) -> List[Dict[str, Any]]:
        """组装分析请求：系统提示 + 截图与任务状态 + 分析要求"""
        parts: List[Dict[str, Any]] = [
            {"type": "image_url", "image_url": {"url": url}} for url in images
        ]
        parts.append({"type": "text", "text": format_state_context(instruction, task_state)})

        width, height = screen_size
        return [
            self.system_message(),
            {"role": "user", "content": parts},
            {"role": "user", "content": ANALYSIS_PROMPT.format(width=width, height=height)},
        ]

    async def _complete(self, messages: List[Dict[str, Any]]) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=messages,
        )
        if not response.choices:
            return ""
        return response.choices[-1].message.content or ""

    async def analyze(self, messages: List[Dict[str, Any]]) -> Tuple[Dict[str, Any], str]:
        """
        请求屏幕分析，返回 (分析对象, 用于落盘的文本)。

        JSON 损坏时由 parse_analysis 负责修复或替换为 error 分析。
        """
        print("[LLM] 正在分析当前屏幕...")
        raw = await self._complete(messages)
        print(f"[LLM] 分析结果: {raw}")
        return parse_analysis(raw)

    async def plan(self, messages: List[Dict[str, Any]], analysis: Dict[str, Any], instruction: str) -> str:
        """在分析之后追加 ANALYSIS 轮次并请求动作计划，返回去掉代码块标记的文本"""
        messages = messages + [
            {"role": "assistant",
             "content": f"ANALYSIS: {json.dumps(analysis, indent=2, ensure_ascii=False)}"},
            {"role": "user", "content": PLAN_PROMPT.format(instruction=instruction)},
        ]
        print("[LLM] 正在规划动作...")
        raw = await self._complete(messages)
        print(f"[LLM] 动作计划: {raw}")
        return strip_code_fences(raw)

    async def refine_instruction(self, instruction: str, task_state) -> str:
        """根据最近的反馈让 LLM 改写指令；返回空串时调用方应保留原指令"""
        if task_state.status == "completed":
            feedback = "Task completed successfully"
        elif task_state.feedback:
            feedback = task_state.feedback[-1]
        else:
            feedback = "Task in progress"

        prompt = REFINE_PROMPT.format(
            instruction=instruction,
            feedback=feedback,
            status=task_state.status,
            attempts=task_state.attempts,
            last_action=task_state.last_action,
            memory=json.dumps(task_state.memory, ensure_ascii=False),
        )
        raw = await self._complete([{"role": "user", "content": prompt}])
        return raw.strip()


def create_client(api_key: str, base_url: Optional[str] = None) -> AsyncOpenAI:
    return AsyncOpenAI(api_key=api_key, base_url=base_url)
