"""Core — models, engine, detection, persistence and use cases."""
