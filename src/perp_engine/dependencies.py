"""Process-wide EngineRunner, handed to routers through FastAPI Depends."""

from src.perp_engine.engine import build_in_memory_engine
from src.perp_engine.runner import EngineRunner

_runner: EngineRunner | None = None


def get_engine_runner() -> EngineRunner:
    global _runner  # noqa: PLW0603
    if _runner is None:
        engine, _ = build_in_memory_engine()
        _runner = EngineRunner(engine)
    return _runner
