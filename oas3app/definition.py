"""
oas3-app: Definition Loading

One synchronous read of the definition file at construction time. YAML and
JSON are both accepted (JSON is parsed as YAML). Errors are not recovered:
OSError and yaml.YAMLError reach the caller unchanged, and a document whose
root is not a mapping raises DefinitionError.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from openapi_core import Config, OpenAPI, V30RequestUnmarshaller, V31RequestUnmarshaller

from oas3app.exceptions import DefinitionError

logger = logging.getLogger(__name__)


def load_definition(path: Union[str, Path]) -> Dict[str, Any]:
    """Read and parse the definition document at `path`."""
    with open(path, "r", encoding="utf-8") as f:
        document = yaml.safe_load(f)
    if not isinstance(document, dict):
        raise DefinitionError(str(path))
    logger.debug("Loaded definition %s (%d paths)", path, len(document.get("paths") or {}))
    return document


class SkipSecurity:
    """Request unmarshaller mixin that treats every security requirement as met."""

    def _get_security(self, *args, **kwargs):
        return {}


class V30UncheckedSecurityUnmarshaller(SkipSecurity, V30RequestUnmarshaller):
    pass


class V31UncheckedSecurityUnmarshaller(SkipSecurity, V31RequestUnmarshaller):
    pass


def build_openapi(document: Dict[str, Any], validate_security: bool = True) -> OpenAPI:
    """
    Build the openapi-core object used by the validator.

    openapi-core validates the document itself here, so an invalid OpenAPI
    document fails construction. With validate_security=False the security
    requirements are not evaluated at all; parameters and body are still
    validated.
    """
    if validate_security:
        return OpenAPI.from_dict(document)

    if str(document.get("openapi", "")).startswith("3.1"):
        unmarshaller_cls = V31UncheckedSecurityUnmarshaller
    else:
        unmarshaller_cls = V30UncheckedSecurityUnmarshaller
    return OpenAPI.from_dict(document, config=Config(request_unmarshaller_cls=unmarshaller_cls))
