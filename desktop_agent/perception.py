"""感知模块：截取所有显示器的屏幕并编码给 LLM"""

import base64
import io
from pathlib import Path
from typing import List, Union

import mss
from PIL import Image


class Screens:
    """
    感知模块：截屏 → 缩小 → PNG → base64。

    原始截图保存为 monitor_<i>.png，缩小后的图保存为 screenshot_resized.png，
    两者都写入当前迭代目录。
    """

    def __init__(self, resize_factor: int = 3):
        self.resize_factor = max(int(resize_factor), 1)
        with mss.mss() as sct:
            # monitors[0] 是所有屏幕拼接的虚拟屏幕，真实显示器从 1 开始
            self.monitors = list(sct.monitors[1:])
        if not self.monitors:
            raise RuntimeError("未检测到任何显示器")

    def report(self):
        for i, monitor in enumerate(self.monitors):
            print(f"Monitor {i}: {monitor['width']}x{monitor['height']} @ ({monitor['left']}, {monitor['top']})")

    def capture(self, directory: Union[str, Path]) -> List[str]:
        """截取所有显示器，返回 data URL 列表"""
        directory = Path(directory)
        images = []
        with mss.mss() as sct:
            for i, monitor in enumerate(self.monitors):
                shot = sct.grab(monitor)
                img = Image.frombytes("RGB", shot.size, shot.bgra, "raw", "BGRX")
                img.save(directory / f"monitor_{i}.png")

                resized = self.resize(img)
                resized.save(directory / "screenshot_resized.png")
                images.append(self.to_data_url(resized))
        return images

    def resize(self, img: Image.Image) -> Image.Image:
        width, height = img.size
        size = (max(width // self.resize_factor, 1), max(height // self.resize_factor, 1))
        return img.resize(size, Image.Resampling.BICUBIC)

    @staticmethod
    def to_data_url(img: Image.Image) -> str:
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("utf-8")
