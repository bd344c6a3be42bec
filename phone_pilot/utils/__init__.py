from phone_pilot.utils.logging_config import setup_logging

__all__ = ["setup_logging"]
