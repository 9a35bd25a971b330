"""Step-through debugger for manual formula functions."""

from .controller import ExecutionSession  # noqa: F401
from .manual import compute_with_manual_engine  # noqa: F401
from .api import (  # noqa: F401
    transform_source,
    dump_ast,
    detect_linkage,
    build_history,
)
