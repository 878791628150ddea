"""数据模型定义"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


class ActionError(ValueError):
    """动作参数缺失或非法"""


def _now() -> int:
    return int(time.time())


@dataclass
class ActionResult:
    """单个动作的执行结果"""
    action_type: str
    success: bool = False
    timestamp: int = field(default_factory=_now)
    error_message: Optional[str] = None
    retry_count: int = 0

    def mark_success(self):
        self.success = True
        self.error_message = None
        self.timestamp = _now()

    def mark_error(self, message: str):
        self.success = False
        self.error_message = message
        self.timestamp = _now()

    def increment_retry(self):
        self.retry_count += 1
        self.timestamp = _now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action_type": self.action_type,
            "success": self.success,
            "timestamp": self.timestamp,
            "error_message": self.error_message,
            "retry_count": self.retry_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionResult":
        return cls(
            action_type=data.get("action_type", "unknown"),
            success=bool(data.get("success", False)),
            timestamp=int(data.get("timestamp", 0)),
            error_message=data.get("error_message"),
            retry_count=int(data.get("retry_count", 0)),
        )


# ──────────────────────────────────────────────
# 屏幕分析（LLM 输出）
# ──────────────────────────────────────────────

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class UIElement:
    """屏幕上的一个 UI 元素"""
    type: str
    coords: List[float]  # [x1, y1, x2, y2]

    @property
    def center(self) -> Optional[tuple]:
        """包围盒中心；坐标不完整时返回 None"""
        if len(self.coords) < 4 or not all(_is_number(c) for c in self.coords[:4]):
            return None
        x1, y1, x2, y2 = self.coords[:4]
        return int((x1 + x2) / 2), int((y1 + y2) / 2)


@dataclass
class WindowState:
    """分析结果中的窗口/焦点状态"""
    focused_element: Optional[str] = None
    selected_text: Optional[str] = None
    active_window: Optional[str] = None
    window_title: Optional[str] = None
    window_class: Optional[str] = None
    target_window: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WindowState":
        def text(key):
            value = data.get(key)
            return value if isinstance(value, str) else None

        return cls(
            focused_element=text("focused_element"),
            selected_text=text("selected_text"),
            active_window=text("active_window"),
            window_title=text("window_title"),
            window_class=text("window_class"),
            target_window=text("target_window"),
        )


@dataclass
class ScreenAnalysis:
    """
    LLM 对当前屏幕的结构化描述。

    字段缺失不会报错：缺失的 state 为 None，缺失的列表为空，
    由 Verifier 将其视为验证失败/跳过。
    """
    context: str = ""
    ui_elements: List[UIElement] = field(default_factory=list)
    state: Optional[WindowState] = None
    challenges: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Optional["ScreenAnalysis"]:
        if not isinstance(data, dict) or not data:
            return None

        elements = []
        for item in data.get("ui_elements") or []:
            if not isinstance(item, dict):
                continue
            coords = item.get("coords", item.get("bbox"))
            elements.append(UIElement(
                type=str(item.get("type", "")),
                coords=list(coords) if isinstance(coords, list) else [],
            ))

        state = data.get("state")
        context = data.get("context")
        return cls(
            context=context if isinstance(context, str) else "",
            ui_elements=elements,
            state=WindowState.from_dict(state) if isinstance(state, dict) else None,
            challenges=[c for c in data.get("challenges") or [] if isinstance(c, str)],
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "context": self.context,
            "ui_elements": [{"type": e.type, "coords": e.coords} for e in self.ui_elements],
            "challenges": list(self.challenges),
        }
        if self.state is not None:
            data["state"] = {
                "focused_element": self.state.focused_element,
                "selected_text": self.state.selected_text,
                "active_window": self.state.active_window,
                "window_title": self.state.window_title,
                "window_class": self.state.window_class,
                "target_window": self.state.target_window,
            }
        return data


# ──────────────────────────────────────────────
# 动作（LLM 输出的动作计划中的单个元素）
# ──────────────────────────────────────────────

@dataclass
class WindowFocus:
    title: str
    window_class: str
    method: str  # alt_tab|super_tab
    kind = "window_focus"


@dataclass
class MouseMove:
    x: int
    y: int
    kind = "mouse_move"


@dataclass
class MouseClick:
    button: str  # left|right|middle
    x: Optional[int] = None
    y: Optional[int] = None
    kind = "mouse_click"


@dataclass
class KeyPress:
    key: str
    kind = "key_press"


@dataclass
class KeyCombination:
    keys: List[str]
    kind = "key_combination"


@dataclass
class TextInput:
    text: str
    kind = "text_input"


@dataclass
class Wait:
    ms: int
    kind = "wait"


@dataclass
class TaskDone:
    reason: str
    kind = "task_done"


Action = Union[WindowFocus, MouseMove, MouseClick, KeyPress, KeyCombination, TextInput, Wait, TaskDone]

ACTION_KINDS = (
    "window_focus",
    "mouse_move",
    "mouse_click",
    "key_press",
    "key_combination",
    "text_input",
    "wait",
    "task_done",
)


def action_type_of(data: Any) -> str:
    """取出原始动作的类型名，无法识别时返回 unknown"""
    if isinstance(data, dict) and isinstance(data.get("action"), str):
        return data["action"]
    kind = getattr(data, "kind", None)
    return kind if isinstance(kind, str) else "unknown"


def _int(data: Dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if not _is_number(value):
        return None
    return int(value)


def _str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) else None


def parse_action(data: Any) -> Action:
    """
    把 LLM 给出的松散 JSON 对象校验并转换为强类型动作。

    缺少必填字段或类型未知时抛出 ActionError，错误信息指明缺失的参数。
    """
    if not isinstance(data, dict):
        raise ActionError("Action must be a JSON object")

    kind = data.get("action")

    if kind == "window_focus":
        title, window_class, method = _str(data, "title"), _str(data, "class"), _str(data, "method")
        if title is None or window_class is None or method is None:
            raise ActionError("Missing parameters for window_focus action")
        return WindowFocus(title=title, window_class=window_class, method=method)

    if kind == "mouse_move":
        x, y = _int(data, "x"), _int(data, "y")
        if x is None or y is None:
            raise ActionError("Missing coordinates for mouse_move action")
        return MouseMove(x=x, y=y)

    if kind == "mouse_click":
        button = _str(data, "button")
        if button is None:
            raise ActionError("Missing button for mouse_click action")
        return MouseClick(button=button, x=_int(data, "x"), y=_int(data, "y"))

    if kind == "key_press":
        key = _str(data, "key")
        if key is None:
            raise ActionError("Missing key for key_press action")
        return KeyPress(key=key)

    if kind == "key_combination":
        keys = data.get("keys")
        if not isinstance(keys, list):
            raise ActionError("Missing keys for key_combination action")
        if not all(isinstance(k, str) for k in keys):
            raise ActionError(f"Invalid keys for key_combination action: {keys}")
        return KeyCombination(keys=[k.lower() for k in keys])

    if kind == "text_input":
        text = _str(data, "text")
        if text is None:
            raise ActionError("Missing text for text_input action")
        return TextInput(text=text)

    if kind == "wait":
        ms = _int(data, "ms")
        if ms is None:
            raise ActionError("Missing ms for wait action")
        return Wait(ms=ms)

    if kind == "task_done":
        reason = _str(data, "reason")
        if reason is None:
            raise ActionError("Missing reason for task_done action")
        return TaskDone(reason=reason)

    raise ActionError(f"Unknown action type: {kind if isinstance(kind, str) else 'unknown'}")
