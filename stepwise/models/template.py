"""Template and Step — the workflow document format.

A template is a named, versioned unit: an environment plus an ordered list
of steps. A step *is* a template (the sub-template it invokes through
``uses``) extended with the HTTP request fields and the ``set`` / ``out``
environments.

Format example
--------------
.. code-block:: yaml

    author: acme
    namespace: login
    version: v1.0.0
    env:
      base: https://api.example.com
    steps:
      - method: POST
        url: "{{ base() }}/login"
        body: '{"user": "{{ user() }}"}'
        header:
          Content-Type: [application/json]
        set:
          token: "{{ response | json_get('token') }}"
        out:
          token: "{{ token() }}"
      - uses: acme/profile@v1.2.0
        namespace: profile
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stepwise.errors import InvalidSetValueError
from stepwise.models.env import Env
from stepwise.models.version import Identity, Version


class Template(BaseModel):
    """A reusable, versioned sequence of steps.

    Attributes:
        description: Human-readable purpose.
        author:      First identity component.
        namespace:   Second identity component; also the prefix under which a
                     step's exports are registered for later steps.
        version:     Third identity component.
        env:         Variables available while the template runs.
        steps:       Executed strictly in declared order.
    """

    model_config = ConfigDict(populate_by_name=True)

    description: str = ""
    author: str = ""
    namespace: str = ""
    version: Version = Field(default_factory=Version)
    env: Env = Field(default_factory=dict)
    steps: list["Step"] = Field(default_factory=list)

    @field_validator("env", "steps", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any, info: Any) -> Any:
        if value is None:
            return {} if info.field_name == "env" else []
        return value

    @property
    def identity(self) -> Identity:
        return Identity(self.author, self.namespace, self.version)

    def __str__(self) -> str:
        if not self.description:
            return str(self.identity)
        return f"{self.identity}: {self.description}"

    def describe(self, indent: str = "  ") -> str:
        """Render the step tree, one line per step, nested steps indented."""
        lines = [str(self.identity)]

        def walk(depth: int, step: Step) -> None:
            lines.append(indent * depth + step.label)
            for sub in step.steps:
                walk(depth + 1, sub)

        for step in self.steps:
            walk(1, step)
        return "\n".join(lines)


class Step(Template):
    """One unit of execution — an HTTP call or a sub-template invocation.

    Attributes:
        skip:   Rendered then parsed as a boolean; true skips the step.
        uses:   Identity of the sub-template to run. When set, this step's
                own template fields hold the resolved sub-template.
        method: HTTP method, used verbatim (empty means GET).
        url:    Rendered request URL.
        body:   Rendered request body.
        header: Header name → values; every value is rendered.
        set_:   Variables registered after the step (key ``set`` in files);
                a nested ``set`` entry chains another batch.
        out:    Variables exported to the caller.
    """

    skip: str = ""
    uses: str = ""
    method: str = ""
    url: str = ""
    body: str = ""
    header: dict[str, list[str]] = Field(default_factory=dict)
    set_: Env | None = Field(default=None, alias="set")
    out: Env | None = None

    @field_validator("header", mode="before")
    @classmethod
    def _header_values_as_lists(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {k: [v] if isinstance(v, str) else v for k, v in value.items()}
        return value

    @property
    def kind(self) -> str:
        if self.uses:
            return "template"
        if self.url:
            return "http"
        return "noop"

    @property
    def label(self) -> str:
        if self.uses:
            return self.uses
        if self.url:
            return f"{self.method or 'GET'} {self.url}"
        return self.description or "noop"

    def set_chain(self) -> list[Env]:
        """Unwind the nested ``set`` links into ordered registration batches.

        ``{"x": "1", "set": {"y": "2"}}`` becomes ``[{"x": "1"}, {"y": "2"}]``.
        The step itself is left untouched.

        Raises:
            InvalidSetValueError: a ``set`` link is neither a mapping nor null.
        """
        batches: list[Env] = []
        current: Any = self.set_
        while current is not None:
            if not isinstance(current, dict):
                raise InvalidSetValueError(
                    f'step {self.label}: invalid environment variable value: "{current!r}"'
                )
            batches.append({k: v for k, v in current.items() if k != "set"})
            current = current.get("set")
        return batches


Template.model_rebuild()
Step.model_rebuild()
