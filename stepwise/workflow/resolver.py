"""Resolver — recursively load a template and every template its steps use.

Environment flows downward: a caller's env (the template's env before
decoding, or the env a step declares next to ``uses``) overrides the
decoded template's own defaults. A namespace set by the caller before
decoding survives decoding.
"""

from __future__ import annotations

import structlog

from stepwise.errors import CycleDetectedError, DecoderMissingError
from stepwise.models.env import merge_env
from stepwise.models.template import Template
from stepwise.tools.decoder import Decoder

logger = structlog.get_logger(component="workflow.resolver")


class Resolver:
    """Resolve template identities through a ``Decoder``.

    Raises:
        DecoderMissingError: no decoder was given.
    """

    def __init__(self, decoder: Decoder | None) -> None:
        if decoder is None:
            raise DecoderMissingError("invalid decoder: a resolver needs a decoder")
        self.decoder = decoder

    async def resolve(self, identity: str, template: Template | None = None) -> Template:
        """Decode ``identity`` into ``template`` and resolve all its ``uses``.

        Args:
            identity: Template identity or path, as understood by the decoder.
            template: Target to fill in place. Its current ``env`` and
                      ``namespace`` act as caller overrides.

        Returns:
            The resolved template (``template`` itself when given).

        Raises:
            CycleDetectedError: a template reaches itself through ``uses``.
            Any decoder error, unchanged.
        """
        if template is None:
            template = Template()
        await self._resolve(identity, template, ())
        logger.debug("template_resolved", identity=identity, template=str(template.identity))
        return template

    async def _resolve(self, identity: str, template: Template, chain: tuple[str, ...]) -> None:
        if identity in chain:
            logger.warning("uses_cycle_detected", chain=[*chain, identity])
            raise CycleDetectedError([*chain, identity])

        env = dict(template.env)
        namespace = template.namespace

        await self.decoder.load(identity, template)

        if namespace:
            template.namespace = namespace
        template.env = merge_env(template.env, env)

        chain = (*chain, identity)
        for step in template.steps:
            if step.uses:
                await self._resolve(step.uses, step, chain)
            if step.out is None:
                step.out = {}
