from phone_pilot.actions.codec import decode, encode

__all__ = ["decode", "encode"]
