import pytest

from fakes import FakeBackend, FakeProvider

from phone_pilot.agent import AgentOrchestrator
from phone_pilot.backends import BackendRegistry
from phone_pilot.config import Settings
from phone_pilot.model import DecisionClient


@pytest.fixture
def settings():
    """不等待的运行配置"""
    return Settings(step_delay=0, app_launch_delay=0)


@pytest.fixture
def make_orchestrator(settings):
    """
    构建 Orchestrator：make_orchestrator(replies, backend=..., vision=..., callback=...)
    返回 (orchestrator, provider, backend)
    """
    def _make(replies, backend=None, vision=None, callback=None, trace=None, **overrides):
        for key, value in overrides.items():
            setattr(settings, key, value)
        provider = FakeProvider(replies)
        backend = backend if backend is not None else FakeBackend()
        client = DecisionClient(provider, vision_provider=vision, lang=settings.language)
        orchestrator = AgentOrchestrator(
            client,
            BackendRegistry([backend]),
            settings=settings,
            callback=callback,
            trace=trace,
        )
        return orchestrator, provider, backend

    return _make
