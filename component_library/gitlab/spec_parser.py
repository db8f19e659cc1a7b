"""Parser for GitLab CI/CD component templates.

A component template starts with a header document holding a `spec:` mapping,
separated from the job definitions by a `---` line:

    # Build and push a container image
    spec:
      inputs:
        image:
          description: Image name
        tag:
          default: latest
    ---
    build:
      script: ...

Only the header document is parsed; job documents may use GitLab-only YAML tags.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from dataclasses import field

import yaml

from component_library.errors import ParseError
from component_library.models.components import ComponentParameter

logger = logging.getLogger(__name__)

DOCUMENT_SEPARATOR = re.compile(r"^---\s*$", re.MULTILINE)
SPEC_HEADER = re.compile(r"^spec:", re.MULTILINE)
COMMENT_LINE = re.compile(r"^#\s*(.+?)\s*$", re.MULTILINE)


@dataclass
class ParsedSpec:
    """Result of parsing a template header."""

    description: str = ""
    parameters: list[ComponentParameter] = field(default_factory=list)
    is_component: bool = False


def _comment_description(header: str) -> str:
    match = COMMENT_LINE.search(header)
    if not match:
        return ""
    text = match.group(1)
    lowered = text.lower()
    if "gitlab" in lowered or "ci" in lowered:
        return ""
    return text


def _stringify(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_inputs(inputs: dict) -> list[ComponentParameter]:
    parameters = []
    for name, definition in inputs.items():
        definition = definition if isinstance(definition, dict) else {}
        has_default = "default" in definition
        parameters.append(
            ComponentParameter(
                name=str(name),
                description=_stringify(definition.get("description") or f"Parameter: {name}"),
                required=not has_default,
                type=_stringify(definition.get("type") or "string"),
                default=definition.get("default") if has_default else None,
            )
        )
    return parameters


def _parse_legacy_variables(variables: dict) -> list[ComponentParameter]:
    return [
        ComponentParameter(
            name=str(name),
            description=f"Parameter: {name}",
            required=False,
            default=value if value not in (None, "") else None,
        )
        for name, value in variables.items()
    ]


def parse_component_spec(content: str, filename: str | None = None) -> ParsedSpec:
    """Parse the header of a component template.

    Args:
        content: Full template text
        filename: Template file name, for log messages

    Returns:
        Parsed description and parameters; is_component is False for files
        without a spec header (fragments, anchors)

    Raises:
        ParseError: If the content is empty or the header is not valid YAML
    """
    label = filename or "<template>"
    if not content.strip():
        raise ParseError(f"Template {label} is empty")

    header = DOCUMENT_SEPARATOR.split(content, maxsplit=1)[0]
    description = _comment_description(header)

    if not SPEC_HEADER.search(header):
        logger.debug(f"Template {label} has no spec header, skipping")
        return ParsedSpec(description=description, is_component=False)

    try:
        document = yaml.safe_load(header)
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid YAML in spec header of {label}: {e}", source=header) from e

    spec = document.get("spec") if isinstance(document, dict) else None
    if spec is None:
        spec = {}
    if not isinstance(spec, dict):
        raise ParseError(f"spec in {label} is not a mapping", source=header)

    inputs = spec.get("inputs")
    if isinstance(inputs, dict):
        parameters = _parse_inputs(inputs)
    elif isinstance(spec.get("variables"), dict):
        parameters = _parse_legacy_variables(spec["variables"])
    else:
        parameters = []

    logger.debug(f"Template {label}: {len(parameters)} parameters")
    return ParsedSpec(description=description, parameters=parameters, is_component=True)
