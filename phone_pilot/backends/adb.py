"""
ADB 后端
通过 adb 命令行读取 UI 树、截图并执行手势、按键和应用启停。
所有命令以参数列表形式传给 subprocess，不经过本地 shell。
"""
import logging
import os
import re
import shutil
import subprocess
from typing import List, Optional, Tuple

from phone_pilot.backends.base import (
    Capability,
    CapabilityBackend,
    Privilege,
    RawScreen,
    TextPayload,
)
from phone_pilot.errors import ExecutionError

logger = logging.getLogger(__name__)

UI_DUMP_PATH = "/sdcard/phone_pilot_ui.xml"
ADB_KEYBOARD_IME = "com.android.adbkeyboard/.AdbIME"


class ADBHelper:
    """ADB工具辅助类"""

    def __init__(self, custom_adb_path: str = "", device_id: Optional[str] = None):
        self.custom_adb_path = custom_adb_path
        self.device_id = device_id
        self._adb_path = None

    def get_adb_path(self) -> str:
        """获取ADB可执行文件路径"""
        if self._adb_path:
            return self._adb_path

        # 优先使用自定义路径
        if self.custom_adb_path and os.path.exists(self.custom_adb_path):
            self._adb_path = self.custom_adb_path
            return self._adb_path

        # 系统 PATH 中的 adb
        found = shutil.which("adb")
        if found:
            self._adb_path = found
            return self._adb_path

        return ""

    def _build(self, args: List[str]) -> List[str]:
        cmd = [self.get_adb_path()]
        if self.device_id:
            cmd.extend(["-s", self.device_id])
        return cmd + list(args)

    def is_available(self) -> bool:
        """检查ADB可用且设备在线"""
        if not self.get_adb_path():
            return False
        success, output = self.run_command(["get-state"], timeout=5)
        return success and output.strip() == "device"

    def run_command(self, args: List[str], timeout: int = 30) -> Tuple[bool, str]:
        """运行ADB命令，返回 (是否成功, 输出或错误信息)"""
        if not self.get_adb_path():
            return False, "ADB不可用"

        try:
            result = subprocess.run(
                self._build(args),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
            if result.returncode == 0:
                return True, result.stdout.strip()
            else:
                return False, result.stderr.strip() or result.stdout.strip()
        except subprocess.TimeoutExpired:
            return False, "命令执行超时"
        except OSError as e:
            return False, str(e)

    def run_binary(self, args: List[str], timeout: int = 10) -> Tuple[bool, bytes]:
        """运行ADB命令并返回原始字节输出（截图）"""
        if not self.get_adb_path():
            return False, b""

        try:
            result = subprocess.run(self._build(args), capture_output=True, timeout=timeout)
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.warning("ADB 命令失败 %s: %s", args, e)
            return False, b""
        if result.returncode != 0:
            logger.warning("ADB 命令失败 %s: %s", args, result.stderr.decode("utf-8", "ignore"))
            return False, b""
        return True, result.stdout


class AdbBackend(CapabilityBackend):
    """
    基于 adb shell 的控制后端（SHELL 权限）

    文本输入依赖设备上安装的 ADB Keyboard，通过 base64 广播传递，不做 shell 转义。
    """

    name = "adb"
    privilege = Privilege.SHELL
    capabilities = frozenset({
        Capability.READ_SCREEN,
        Capability.SCREENSHOT,
        Capability.GESTURE,
        Capability.TEXT,
        Capability.KEY,
        Capability.APP_LIFECYCLE,
    })

    def __init__(self, adb_helper: Optional[ADBHelper] = None, device_id: Optional[str] = None):
        self.adb = adb_helper or ADBHelper(device_id=device_id)
        self._screen_size: Optional[Tuple[int, int]] = None
        self._released = False

    def is_available(self) -> bool:
        if self._released:
            return False
        return self.adb.is_available()

    def _shell(self, *args: str, timeout: int = 10) -> str:
        success, output = self.adb.run_command(["shell", *args], timeout=timeout)
        if not success:
            raise ExecutionError(f"adb shell {args[0]} 失败: {output}")
        return output

    # ---- 读屏 ----

    def read_screen(self, include_screenshot: bool = True) -> RawScreen:
        package, activity = self.current_focus()
        raw = RawScreen(package=package, activity=activity)
        raw.ui_xml = self.dump_ui()
        if include_screenshot:
            success, data = self.adb.run_binary(["exec-out", "screencap", "-p"])
            if success and data:
                raw.screenshot = data
        return raw

    def dump_ui(self) -> Optional[str]:
        """uiautomator dump 到设备临时文件，读回后删除"""
        try:
            success, output = self.adb.run_command(
                ["shell", "uiautomator", "dump", UI_DUMP_PATH], timeout=15
            )
            if not success:
                logger.warning("uiautomator dump 失败: %s", output)
                return None
            success, xml_text = self.adb.run_command(["exec-out", "cat", UI_DUMP_PATH], timeout=10)
            if not success or "<hierarchy" not in xml_text:
                logger.warning("读取 UI 树失败")
                return None
            return xml_text[xml_text.index("<"):]
        finally:
            self.adb.run_command(["shell", "rm", "-f", UI_DUMP_PATH], timeout=5)

    def current_focus(self) -> Tuple[str, Optional[str]]:
        """当前前台应用的 package 和 activity"""
        success, output = self.adb.run_command(["shell", "dumpsys", "window", "windows"], timeout=5)
        if not success:
            return "", None
        match = re.search(r"mCurrentFocus=Window\{[^}]+\s([^/\s]+)/([^}\s]+)", output)
        if not match:
            match = re.search(r"mFocusedApp=\S+\{[^}]+\s([^/\s]+)/([^}\s]+)", output)
        if not match:
            return "", None
        package, activity = match.group(1), match.group(2)
        if activity.startswith("."):
            activity = package + activity
        return package, activity

    def screen_size(self) -> Optional[Tuple[int, int]]:
        if self._screen_size:
            return self._screen_size
        success, output = self.adb.run_command(["shell", "wm", "size"], timeout=5)
        if not success:
            return None
        # Override size 优先于 Physical size
        matches = re.findall(r"(Physical|Override) size:\s*(\d+)x(\d+)", output)
        if not matches:
            return None
        sizes = {kind: (int(w), int(h)) for kind, w, h in matches}
        self._screen_size = sizes.get("Override") or sizes.get("Physical")
        return self._screen_size

    # ---- 动作原语 ----

    def tap(self, x: int, y: int) -> str:
        self._shell("input", "tap", str(x), str(y))
        return f"点击 ({x}, {y})"

    def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int) -> str:
        self._shell("input", "swipe", str(x1), str(y1), str(x2), str(y2), str(duration_ms))
        return f"滑动 ({x1}, {y1}) -> ({x2}, {y2})"

    def input_text(self, payload: TextPayload) -> str:
        self._shell("am", "broadcast", "-a", "ADB_INPUT_B64", "--es", "msg", payload.to_base64())
        return f"已输入文本 ({len(payload.text)} 字)"

    def clear_text(self) -> str:
        self._shell("am", "broadcast", "-a", "ADB_CLEAR_TEXT")
        return "已清空输入框"

    def press_key(self, code: int) -> str:
        self._shell("input", "keyevent", str(code))
        return f"按键 {code}"

    def launch(self, identifier: str) -> str:
        output = self._shell(
            "monkey", "-p", identifier, "-c", "android.intent.category.LAUNCHER", "1",
            timeout=15,
        )
        if "No activities found" in output or "monkey aborted" in output:
            raise ExecutionError(f"无法启动 {identifier}: {output}")
        return f"已启动 {identifier}"

    def force_stop(self, identifier: str) -> str:
        self._shell("am", "force-stop", identifier)
        return f"已关闭 {identifier}"

    def release(self) -> None:
        self._released = True
