from phone_pilot.perception.adapter import PerceptionAdapter
from phone_pilot.perception.parser import parse_bounds, parse_nodes, parse_ui_xml

__all__ = ["PerceptionAdapter", "parse_bounds", "parse_nodes", "parse_ui_xml"]
