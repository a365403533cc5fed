"""LangGraph shared state — flows between pipeline steps."""

import operator
from typing import Annotated

from typing_extensions import TypedDict


class PipelineState(TypedDict):
    """State passed through every step node.

    description  — the infrastructure request the run was started with.
    outputs      — artifacts produced so far, keyed by result kind; the
                   reducer merges each step's output into the mapping.
    """

    description: str
    outputs: Annotated[dict[str, str], operator.or_]
