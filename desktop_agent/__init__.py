"""Desktop UI Agent 包

包含各个模块：
- models: 数据模型（动作、屏幕分析、动作结果）
- actuators: 键盘鼠标输入注入
- controller: 执行模块
- verifier: 验证与重试模块
- memory: 任务状态机与迭代记录
- parsing: LLM 输出清洗与修复
- perception: 截屏模块
- planner: 规划模块
- console: 控制台命令
- config: 运行配置
- core: 核心 Agent 类
"""

from .models import ActionResult, ScreenAnalysis, parse_action
from .controller import Controller
from .verifier import RetryController, WeakVerificationPolicy
from .memory import IterationStore, SubstringCompletionPolicy, TaskState
from .planner import Planner
from .config import Settings
from .core import DesktopAgent

__all__ = [
    "ActionResult",
    "ScreenAnalysis",
    "parse_action",
    "Controller",
    "RetryController",
    "WeakVerificationPolicy",
    "IterationStore",
    "SubstringCompletionPolicy",
    "TaskState",
    "Planner",
    "Settings",
    "DesktopAgent",
]
