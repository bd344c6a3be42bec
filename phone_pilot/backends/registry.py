"""后端注册表

由调用方构建并注入 Orchestrator，持有所有后端的引用，负责按权限选择和统一释放。
可用性在每次选择时重新查询，不缓存。
"""

import logging
from typing import Iterable, List, Optional

from phone_pilot.backends.base import CapabilityBackend
from phone_pilot.types import AgentAction

logger = logging.getLogger(__name__)


class BackendRegistry:
    def __init__(self, backends: Optional[Iterable[CapabilityBackend]] = None):
        self._backends: List[CapabilityBackend] = []
        for backend in backends or ():
            self.register(backend)

    def register(self, backend: CapabilityBackend) -> None:
        self._backends.append(backend)
        # 稳定排序：同权限按注册顺序
        self._backends.sort(key=lambda b: b.privilege)
        logger.debug("注册后端: %r", backend)

    def unregister(self, backend: CapabilityBackend) -> None:
        if backend in self._backends:
            self._backends.remove(backend)

    @property
    def backends(self) -> List[CapabilityBackend]:
        return list(self._backends)

    def available(self) -> List[CapabilityBackend]:
        """当前可用的后端，按权限从低到高"""
        result = []
        for backend in self._backends:
            try:
                ok = backend.is_available()
            except Exception:
                logger.exception("查询后端可用性失败: %r", backend)
                ok = False
            if ok:
                result.append(backend)
        return result

    def readers(self) -> List[CapabilityBackend]:
        return [b for b in self.available() if b.can_read_screen()]

    def has_available(self) -> bool:
        return bool(self.available())

    def select(self, action: AgentAction) -> Optional[CapabilityBackend]:
        """权限最低、当前可用且支持该动作的后端"""
        for backend in self._backends:
            if not backend.supports(action):
                continue
            try:
                if backend.is_available():
                    return backend
            except Exception:
                logger.exception("查询后端可用性失败: %r", backend)
        return None

    def release(self) -> None:
        for backend in self._backends:
            try:
                backend.release()
            except Exception:
                logger.exception("释放后端失败: %r", backend)
