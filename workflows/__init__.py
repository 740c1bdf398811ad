"""
Workflows for the Awesome List Ranker

This package contains high-level workflow orchestration:
- pipeline.py: Ranking pipeline (config, run, result)

Usage:
    from workflows.pipeline import ListRankerPipeline
    pipeline = ListRankerPipeline()
    result = await pipeline.rank_links(["https://github.com/psf/requests"])
"""

# Lazy imports keep `import workflows` free of httpx/bs4 side effects
__all__ = [
    "ListRankerPipeline",
    "RankerConfig",
    "RankResult",
    "RankStatus",
]


def __getattr__(name):
    """Lazy import of pipeline classes."""
    if name in __all__:
        from workflows import pipeline
        return getattr(pipeline, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
