"""LLM 输出的清洗、截断修复与解析"""

import copy
import json
from typing import Any, Dict, List, Optional, Tuple

ERROR_ANALYSIS: Dict[str, Any] = {
    "context": "error",
    "ui_elements": [],
    "state": {
        "focused_element": None,
        "selected_text": None,
        "active_window": "unknown",
        "window_title": "unknown",
        "window_class": "unknown",
        "target_window": None,
    },
    "challenges": ["JSON parsing error, possible truncation"],
}


def strip_code_fences(text: str) -> str:
    """去掉 ```json ... ``` 包裹"""
    cleaned = (text or "").strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json"):]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def repair_truncated_json(text: str) -> str:
    """按 {/} 与 [/] 的数量差补齐缺失的右括号（先补 } 再补 ]）"""
    missing_braces = text.count("{") - text.count("}")
    missing_brackets = text.count("[") - text.count("]")
    return text + "}" * max(missing_braces, 0) + "]" * max(missing_brackets, 0)


def parse_analysis(raw: str) -> Tuple[Dict[str, Any], str]:
    """
    解析屏幕分析 JSON，返回 (对象, 最终文本)。

    解析失败时尝试一次截断修复；修复仍失败则返回预置的 error 分析对象，
    而不是中止本轮迭代。
    """
    text = strip_code_fences(raw)
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data, text
        print("❌ 分析结果不是 JSON 对象，使用默认错误分析")
        return copy.deepcopy(ERROR_ANALYSIS), text
    except json.JSONDecodeError as e:
        print(f"❌ 分析 JSON 格式错误: {e}")
        print("尝试修复被截断的 JSON...")

    fixed = repair_truncated_json(text)
    try:
        data = json.loads(fixed)
    except json.JSONDecodeError as e:
        print(f"❌ 无法修复 JSON，使用默认错误分析: {e}")
        return copy.deepcopy(ERROR_ANALYSIS), text

    if not isinstance(data, dict):
        return copy.deepcopy(ERROR_ANALYSIS), text

    print("✓ 已修复被截断的 JSON")
    return data, fixed


def parse_action_plan(raw: str) -> Optional[List[Any]]:
    """解析动作计划；不是 JSON 数组时返回 None，本轮计划将被跳过"""
    text = strip_code_fences(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        print(f"❌ 动作计划 JSON 格式错误: {e}")
        return None
    if not isinstance(data, list):
        print("❌ 动作计划不是 JSON 数组")
        return None
    return data
