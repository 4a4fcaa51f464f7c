"""CIS Tool Mapper - cross-reference CIS Safeguards against a tool catalog."""

__version__ = "1.0.0"
