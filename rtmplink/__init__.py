"""RTMP handshake, chunking, messages, codecs and connection handling."""

__version__ = "0.1.0"