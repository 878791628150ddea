"""
Desktop UI Agent - 基于屏幕截图 + 多模态大模型的桌面自动化智能体

循环执行：截屏 → LLM 分析屏幕 → LLM 规划动作 → 注入键盘鼠标输入并验证/重试 → 保存任务状态。
控制台输入新的指令即可开始任务，输入 stop 结束。

配置（环境变量或 .env）：
    API_KEY       必填
    API_BASE      默认 https://openrouter.ai/api/v1
    MODEL_NAME    默认 google/gemini-2.0-flash-001
    MAX_TOKENS    默认 512

运行示例：
    python desktop_ui_agent.py
"""

import asyncio

from desktop_agent import DesktopAgent, Settings
from desktop_agent.console import ConsoleReader


def main():
    settings = Settings.from_env()
    print(f"max_tokens: {settings.max_tokens}")

    agent = DesktopAgent.from_settings(settings)
    console = ConsoleReader(agent.commands)
    asyncio.run(agent.run(console))


if __name__ == "__main__":
    main()
