"""VideoFlow engine: workflow execution and batch orchestration for video generation."""

__version__ = "1.0.0"
