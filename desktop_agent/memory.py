"""记忆模块：任务状态机与每轮迭代的磁盘记录"""

import json
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from .models import ActionResult, ScreenAnalysis

IN_PROGRESS = "in_progress"
COMPLETED = "completed"
PAUSED = "paused"
FAILED = "failed"
TASK_DONE = "task_done"

MAX_ATTEMPTS = 10

DEFAULT_SUCCESS_CRITERIA = [
    "Task completed",
    "Information found",
    "Research complete",
    "Task done",
]

STATE_FILE = "task_state.json"


class SubstringCompletionPolicy:
    """
    粗略的完成判定：所有成功标准都以子串形式出现在分析文本中，
    分析里没有 challenges，并且至少执行过一个动作。
    """

    MIN_ATTEMPTS = 2

    def is_complete(self, state: "TaskState", analysis_text: str) -> bool:
        if state.attempts < self.MIN_ATTEMPTS:
            return False

        for criterion in state.success_criteria:
            if criterion not in analysis_text:
                return False

        try:
            analysis = json.loads(analysis_text)
        except (ValueError, TypeError):
            analysis = None
        if isinstance(analysis, dict):
            challenges = analysis.get("challenges")
            if isinstance(challenges, list) and challenges:
                return False

        return bool(state.last_action)


@dataclass
class TaskState:
    """自动化任务的进度、记忆和历史结果"""
    instruction: str = ""
    status: str = IN_PROGRESS
    attempts: int = 0
    last_action: str = ""
    success_criteria: List[str] = field(default_factory=lambda: list(DEFAULT_SUCCESS_CRITERIA))
    memory: Dict[str, str] = field(default_factory=dict)
    feedback: List[str] = field(default_factory=list)
    start_time: int = field(default_factory=lambda: int(time.time()))
    last_update: int = field(default_factory=lambda: int(time.time()))
    action_results: List[ActionResult] = field(default_factory=list)
    analysis: Optional[ScreenAnalysis] = None

    def _touch(self):
        self.last_update = int(time.time())

    def update(self, analysis_text: str, actions_text: str):
        """每轮迭代调用一次：计数、记录最后动作，并把分析结果折叠进 memory/feedback"""
        self.attempts += 1
        self._touch()

        try:
            actions = json.loads(actions_text)
        except (ValueError, TypeError):
            actions = None
        if isinstance(actions, list) and actions:
            last = actions[-1]
            if isinstance(last, dict) and isinstance(last.get("action"), str):
                self.last_action = last["action"]

        try:
            analysis = json.loads(analysis_text)
        except (ValueError, TypeError):
            return
        if not isinstance(analysis, dict):
            return

        self.analysis = ScreenAnalysis.from_dict(analysis)
        if isinstance(analysis.get("context"), str):
            self.memory["last_context"] = analysis["context"]
        state = analysis.get("state")
        if isinstance(state, dict) and isinstance(state.get("window_title"), str):
            self.memory["last_window"] = state["window_title"]
        challenges = analysis.get("challenges")
        if isinstance(challenges, list):
            self.feedback.extend(c for c in challenges if isinstance(c, str))

    def should_pause(self) -> bool:
        """尝试次数过多，或最近三条反馈的标签（冒号前部分）完全相同"""
        if self.attempts > MAX_ATTEMPTS:
            return True

        labels = [entry.split(":", 1)[0] for entry in reversed(self.feedback[-3:])]
        return len(labels) == 3 and labels[0] == labels[1] == labels[2]

    def is_complete(self, analysis_text: str, policy: Optional[SubstringCompletionPolicy] = None) -> bool:
        return (policy or SubstringCompletionPolicy()).is_complete(self, analysis_text)

    def set_status(self, status: str):
        self.status = status
        self._touch()

    def set_task_done(self):
        self.set_status(TASK_DONE)

    def add_action_result(self, result: ActionResult):
        self.action_results.append(result)

    def to_dict(self) -> Dict:
        return {
            "instruction": self.instruction,
            "status": self.status,
            "attempts": self.attempts,
            "last_action": self.last_action,
            "success_criteria": list(self.success_criteria),
            "memory": dict(self.memory),
            "feedback": list(self.feedback),
            "start_time": self.start_time,
            "last_update": self.last_update,
            "action_results": [r.to_dict() for r in self.action_results],
            "analysis": self.analysis.to_dict() if self.analysis else {},
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "TaskState":
        return cls(
            instruction=data.get("instruction", ""),
            status=data.get("status", IN_PROGRESS),
            attempts=int(data.get("attempts", 0)),
            last_action=data.get("last_action", ""),
            success_criteria=list(data.get("success_criteria", DEFAULT_SUCCESS_CRITERIA)),
            memory=dict(data.get("memory", {})),
            feedback=list(data.get("feedback", [])),
            start_time=int(data.get("start_time", 0)),
            last_update=int(data.get("last_update", 0)),
            action_results=[ActionResult.from_dict(r) for r in data.get("action_results", [])],
            analysis=ScreenAnalysis.from_dict(data.get("analysis")),
        )

    def save(self, directory: Union[str, Path]) -> Path:
        path = Path(directory) / STATE_FILE
        path.write_text(json.dumps(self.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        return path

    @classmethod
    def load(cls, directory: Union[str, Path]) -> Optional["TaskState"]:
        """读取目录中的任务状态；文件不存在或损坏时返回 None"""
        path = Path(directory) / STATE_FILE
        if not path.exists():
            return None
        try:
            return cls.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (ValueError, TypeError, AttributeError) as e:
            print(f"⚠ 任务状态文件损坏，忽略: {path} ({e})")
            return None


class IterationStore:
    """按时间戳命名的迭代目录：截图、analysis.json、actions.json、task_state.json"""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def new_iteration(self) -> Path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = self.root / timestamp
        path.mkdir(parents=True, exist_ok=True)
        return path

    def iterations(self) -> List[Path]:
        if not self.root.exists():
            return []
        return sorted((p for p in self.root.iterdir() if p.is_dir()), key=lambda p: p.name)

    def load_latest_state(self) -> Optional[TaskState]:
        """从最近一次保存了状态的迭代目录读取 TaskState"""
        for path in reversed(self.iterations()):
            state = TaskState.load(path)
            if state is not None:
                return state
        return None

    @staticmethod
    def write_text(directory: Path, name: str, content: str) -> Path:
        path = Path(directory) / name
        path.write_text(content, encoding="utf-8")
        return path
