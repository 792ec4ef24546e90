"""Chat bot that transcribes voice messages and video notes."""

__version__ = "0.3.0"
