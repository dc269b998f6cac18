"""Region correction and text extraction package."""


def __getattr__(name: str):
    """Lazy re-export so that ``from core.extraction import extract_text_for_regions``
    works without importing the pipeline (and the global config) when only the
    constants module is needed."""
    if name == "extract_text_for_regions":
        from core.extraction.pipeline import extract_text_for_regions  # noqa: F811
        return extract_text_for_regions
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
