"""Shared type aliases for bottleprobe modules."""

Buffer = bytes | bytearray | memoryview
