"""Template sources — file and Postgres decoders."""

from .decoder import Decoder, FileDecoder, apply_decoded
from .template_store import StoreDecoder, TemplateStore

__all__ = ["Decoder", "FileDecoder", "StoreDecoder", "TemplateStore", "apply_decoded"]
