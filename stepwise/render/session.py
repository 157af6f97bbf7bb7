"""SafeRenderer — one shared renderer root, one private session per run.

The root holds the built-in functions and lives for the whole process. Each
run gets its own uniquely named child scope before anything is registered,
so concurrent runs sharing the root never observe each other's variables.
The session is passed explicitly down the run; nothing reaches it through
module state.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from stepwise.models.env import Env
from stepwise.render.renderer import Renderer

if TYPE_CHECKING:
    from stepwise.models.template import Template
    from stepwise.workflow.executor import Executor

logger = structlog.get_logger(component="render.session")


class SafeRenderer:
    """Concurrency-safe entry point for running templates.

    Args:
        data: Read-only data every run renders against.
        root: Shared root renderer (default: a fresh one with built-ins).
    """

    def __init__(self, data: Mapping[str, Any] | None = None, root: Renderer | None = None) -> None:
        self.data = dict(data or {})
        self.root = root or Renderer()

    def session(self) -> Renderer:
        """A fresh child scope of the root, named with a unique token."""
        return self.root.child(uuid.uuid4().hex)

    async def do(self, template: "Template", executor: "Executor | None" = None) -> tuple[Env, bytes]:
        """Run ``template`` in its own session.

        Args:
            template: A resolved template.
            executor: Executor to run with; a temporary one (closed
                afterwards) is used when omitted.

        Returns:
            ``(exported variables, last step result)``.
        """
        from stepwise.workflow.executor import Executor

        session = self.session()
        logger.debug("session_created", session=session.name, template=str(template.identity))
        if executor is not None:
            return await executor.do(template, session, self.data)
        async with Executor() as owned:
            return await owned.do(template, session, self.data)
