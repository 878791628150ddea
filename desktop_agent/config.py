"""运行配置：启动时从环境变量（及 .env）读取一次"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_API_BASE = "https://openrouter.ai/api/v1"
DEFAULT_MODEL_NAME = "google/gemini-2.0-flash-001"
DEFAULT_MAX_TOKENS = 512
DEFAULT_ITERATIONS_DIR = "target/iterations"
DEFAULT_RESIZE_FACTOR = 3


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    api_key: str
    api_base: str = DEFAULT_API_BASE
    model_name: str = DEFAULT_MODEL_NAME
    max_tokens: int = DEFAULT_MAX_TOKENS
    iterations_dir: str = DEFAULT_ITERATIONS_DIR
    resize_factor: int = DEFAULT_RESIZE_FACTOR
    self_instruct: bool = False

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """读取环境变量；API_KEY 缺失时抛出异常以避免静默失败"""
        if load_env_file:
            load_dotenv()

        api_key = os.getenv("API_KEY")
        if not api_key:
            raise ValueError("请设置环境变量 API_KEY，例如：export API_KEY='sk-...'")

        return cls(
            api_key=api_key,
            api_base=os.getenv("API_BASE", DEFAULT_API_BASE),
            model_name=os.getenv("MODEL_NAME", DEFAULT_MODEL_NAME),
            max_tokens=_int_env("MAX_TOKENS", DEFAULT_MAX_TOKENS),
            iterations_dir=os.getenv("ITERATIONS_DIR", DEFAULT_ITERATIONS_DIR),
            resize_factor=_int_env("RESIZE_FACTOR", DEFAULT_RESIZE_FACTOR),
            self_instruct=os.getenv("SELF_INSTRUCT", "").lower() in ("1", "true", "yes", "on"),
        )
