"""
Request handlers.

The hello server has exactly one kind of handler: the greeting renderer.
The router decides WHICH representation to produce and WHEN (after an
optional sloth delay); the renderer only knows HOW to produce it.
"""

from .hello import (
    ContentKind,
    HelloRenderer,
    Rendered,
    RenderError,
)

__all__ = [
    "ContentKind",
    "HelloRenderer",
    "Rendered",
    "RenderError",
]
