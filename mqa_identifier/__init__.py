"""MQA identifier: detect the MQA bit-plane watermark in FLAC files."""

__version__ = "0.3.0"

__all__ = ["__version__"]
