"""执行器底层：键盘与鼠标输入注入"""

import sys
import time
from typing import Callable, List, Sequence, Tuple

import pyperclip


class InputError(RuntimeError):
    """输入注入失败（未知按键、未知按钮或系统拒绝合成输入）"""


# 组合键中允许作为修饰键的名字 → 规范名
MODIFIERS = {
    "control": "ctrl",
    "ctrl": "ctrl",
    "alt": "alt",
    "shift": "shift",
    "meta": "meta",
    "super": "meta",
    "windows": "meta",
    "cmd": "meta",
}

# 组合键最后一个键只能是这些字母，通过文本注入“打出”
COMBINATION_LETTERS = frozenset("twrlacvxz")

SINGLE_KEYS = {
    "return": "enter",
    "enter": "enter",
    "tab": "tab",
    "escape": "esc",
}

BUTTONS = ("left", "right", "middle")

# 剪贴板写入后到粘贴生效前的等待
CLIPBOARD_SETTLE_SECONDS = 0.15


class InputDevice:
    """
    基于 pyautogui 的输入注入能力。

    对外只暴露规范化的按键名（ctrl/alt/shift/meta/tab/enter/esc），
    平台相关的映射在这里完成。
    """

    def __init__(self):
        try:
            import pyautogui
        except Exception as e:
            raise InputError(f"无法初始化输入注入后端: {e}") from e

        pyautogui.FAILSAFE = True  # 鼠标移到屏幕角落可紧急中止
        pyautogui.PAUSE = 0
        self._gui = pyautogui
        self._meta = "command" if sys.platform == "darwin" else "win"
        self._paste_modifier = "command" if sys.platform == "darwin" else "ctrl"

    def _key(self, key: str) -> str:
        return self._meta if key == "meta" else key

    def _call(self, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            raise InputError(str(e)) from e

    def key_down(self, key: str):
        self._call(self._gui.keyDown, self._key(key))

    def key_up(self, key: str):
        self._call(self._gui.keyUp, self._key(key))

    def press(self, key: str):
        self._call(self._gui.press, self._key(key))

    def write(self, text: str):
        self._call(self._gui.write, text)

    def paste(self, text: str):
        """
        经剪贴板粘贴文本，结束后恢复原剪贴板内容。

        pyautogui.write 只能逐键输入 ASCII，中文等字符会被静默跳过。
        """
        previous = self._call(pyperclip.paste)
        self._call(pyperclip.copy, text)
        try:
            time.sleep(CLIPBOARD_SETTLE_SECONDS)
            self._call(self._gui.hotkey, self._paste_modifier, "v")
            time.sleep(CLIPBOARD_SETTLE_SECONDS)
        finally:
            self._call(pyperclip.copy, previous)

    def move_to(self, x: int, y: int):
        self._call(self._gui.moveTo, x, y)

    def click(self, button: str):
        self._call(self._gui.click, button=button)

    def screen_size(self) -> Tuple[int, int]:
        width, height = self._call(self._gui.size)
        return int(width), int(height)


class Keyboard:
    """键盘控制"""

    def __init__(self, device, sleep: Callable[[float], None] = time.sleep):
        self.device = device
        self.sleep = sleep

    def press_key(self, key_name: str):
        key = SINGLE_KEYS.get(key_name.lower())
        if key is None:
            raise InputError(f"Unknown key: {key_name}")
        self.device.press(key)

    def type_text(self, text: str):
        """ASCII 文本逐键输入，含其它字符时整段经剪贴板粘贴"""
        if text.isascii():
            self.device.write(text)
        else:
            self.device.paste(text)

    def press_key_combination(self, keys: Sequence[str]):
        """
        按下除最后一个键之外的所有修饰键（按给定顺序），
        以单字符文本注入最后一个键，再逆序释放修饰键。

        所有键在注入前先校验，非法组合不会触发任何输入。
        """
        if not keys:
            raise InputError("No keys provided for combination")

        modifiers: List[str] = []
        for key in keys[:-1]:
            name = MODIFIERS.get(key.lower())
            if name is None:
                raise InputError(f"Unknown modifier key: {key}")
            modifiers.append(name)

        last = keys[-1].lower()
        if last not in COMBINATION_LETTERS:
            raise InputError(f"Unknown key in combination: {keys[-1]}")

        pressed: List[str] = []
        try:
            for name in modifiers:
                self.device.key_down(name)
                pressed.append(name)

            self.sleep(0.05)
            self.device.write(last)
            self.sleep(0.05)
        finally:
            for name in reversed(pressed):
                self.device.key_up(name)

    def _switch_window(self, modifier: str):
        self.device.key_down(modifier)
        try:
            self.sleep(0.1)
            self.device.press("tab")
            self.sleep(0.1)
        finally:
            self.device.key_up(modifier)

    def alt_tab(self):
        """Alt+Tab 切换窗口"""
        self._switch_window("alt")

    def super_tab(self):
        """Meta+Tab 切换窗口（macOS 上为 Cmd+Tab）"""
        self._switch_window("meta")


class Mouse:
    """鼠标控制"""

    def __init__(self, device):
        self.device = device

    def move_to(self, x: int, y: int):
        self.device.move_to(x, y)

    def click(self, button_name: str):
        button = button_name.lower()
        if button not in BUTTONS:
            raise InputError(f"Unknown mouse button: {button_name}")
        self.device.click(button)
