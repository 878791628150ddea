"""控制台命令：在独立线程中读取用户输入，通过队列发送给主循环"""

import queue
import threading
from dataclasses import dataclass
from typing import Callable, Optional

STOP = "stop"
SET_INSTRUCTION = "set_instruction"

HELP_TEXT = """Available commands:
  stop - Stop the automation
  pause - Pause the automation (not implemented yet)
  resume - Resume the automation (not implemented yet)
  help - Show this help message
  Any other input will be treated as an instruction for the AI
Note: The AI can put itself in a 'task_done' state and wait for new instructions."""


@dataclass
class Command:
    """从控制台发往主循环的消息"""
    kind: str  # stop|set_instruction
    instruction: Optional[str] = None


def parse_command(line: str) -> Optional[Command]:
    """
    把一行输入转换为命令。

    help/pause/resume 只在控制台打印，不会发给主循环，返回 None。
    """
    text = line.strip()
    if not text:
        return None
    if text == "stop":
        print("Stopping automation...")
        return Command(STOP)
    if text == "pause":
        print("Pausing automation... (pause 尚未接入主循环，指令被忽略)")
        return None
    if text == "resume":
        print("Resuming automation... (resume 尚未接入主循环，指令被忽略)")
        return None
    if text == "help":
        print(HELP_TEXT)
        return None
    print(f"New instruction set: {text}")
    return Command(SET_INSTRUCTION, text)


class ConsoleReader:
    """阻塞读取 stdin 的后台线程；读到 stop 或输入结束时退出"""

    def __init__(self, commands: "queue.Queue[Command]", read_line: Callable[[], str] = input):
        self.commands = commands
        self.read_line = read_line
        self._thread: Optional[threading.Thread] = None

    def start(self):
        print(HELP_TEXT)
        print("Waiting for your first instruction...")
        self._thread = threading.Thread(target=self.run, name="console-reader", daemon=True)
        self._thread.start()

    def run(self):
        while True:
            try:
                line = self.read_line()
            except EOFError:
                self.commands.put(Command(STOP))
                return

            command = parse_command(line)
            if command is None:
                continue
            self.commands.put(command)
            if command.kind == STOP:
                return

    def join(self, timeout: Optional[float] = None):
        if self._thread is not None:
            self._thread.join(timeout)
