from phone_pilot.dispatch.apps import AppResolver, MappingAppResolver
from phone_pilot.dispatch.dispatcher import ActionDispatcher

__all__ = ["AppResolver", "MappingAppResolver", "ActionDispatcher"]
