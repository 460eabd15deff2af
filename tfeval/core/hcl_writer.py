"""
Render values and expanded blocks back into HCL text.
"""

import json
from typing import Any, Optional, Sequence

from ..security.redactor import OutputRedactor
from .block_expander import ExpandedBlock
from .config_loader import SENSITIVE_MARKER, RenderedConfig
from .values import Value, ValueType, format_number

INDENT = "  "


def format_value(value: Any, depth: int = 0) -> str:
    """
    Format a Value (or plain Python data) as an HCL literal.

    Args:
        value: Value or Python data
        depth: Nesting depth, for indenting multi-line objects

    Returns:
        HCL expression text
    """
    value = Value.from_python(value)

    if value.tag == ValueType.NULL:
        return "null"
    if value.tag == ValueType.BOOL:
        return "true" if value.raw else "false"
    if value.tag == ValueType.NUMBER:
        return format_number(value.raw)
    if value.tag == ValueType.STRING:
        return _quote(value.raw)
    if value.tag == ValueType.LIST:
        return "[" + ", ".join(format_value(item, depth) for item in value.raw) + "]"

    if not value.raw:
        return "{}"
    pad = INDENT * (depth + 1)
    lines = ["{"]
    for key, item in value.raw.items():
        lines.append(f"{pad}{_key(key)} = {format_value(item, depth + 1)}")
    lines.append(INDENT * depth + "}")
    return "\n".join(lines)


def format_block(
    block: ExpandedBlock,
    labels: Sequence[str] = (),
    depth: int = 0,
    keyword: Optional[str] = None,
    redactor: Optional[OutputRedactor] = None,
) -> str:
    """
    Format an ExpandedBlock as an HCL block.

    Null attributes are omitted, as Terraform treats them as unset.

    Args:
        block: Block to format
        labels: Block labels, e.g. ["aws_instance", "web"]
        depth: Nesting depth
        keyword: Header word, defaults to the block type
        redactor: Hides sensitive values in attributes
    """
    pad = INDENT * depth
    inner = INDENT * (depth + 1)
    header = " ".join([keyword or block.block_type or "block"] + [_quote(label) for label in labels])

    lines = [f"{pad}{header} {{"]
    for name, value in block.attributes.items():
        if value.is_null:
            continue
        lines.append(f"{inner}{name} = {format_value(_redacted(value, redactor), depth + 1)}")
    for nested_blocks in block.blocks.values():
        for nested in nested_blocks:
            lines.append(format_block(nested, depth=depth + 1, redactor=redactor))
    lines.append(f"{pad}}}")
    return "\n".join(lines)


def format_config(config: RenderedConfig, redactor: Optional[OutputRedactor] = None) -> str:
    """
    Format a rendered configuration as HCL: one block per resource
    instance, then one block per output.
    """
    sections = []
    for resource in config.resources:
        block = format_block(
            resource.body, labels=[resource.type, resource.name], keyword="resource", redactor=redactor
        )
        sections.append(f"# {resource.address}\n{block}")
    for name, output in config.outputs.items():
        value = SENSITIVE_MARKER if output.sensitive else _redacted(output.value, redactor)
        sections.append(f"output {_quote(name)} {{\n{INDENT}value = {format_value(value, 1)}\n}}")

    return "\n\n".join(sections) + "\n" if sections else ""


def _redacted(value: Value, redactor: Optional[OutputRedactor]) -> Any:
    # Redact the data, not the formatted text
    if redactor is None:
        return value
    return redactor.redact_data(value.to_python())


def _quote(text: str) -> str:
    # Escape backslashes, quotes and interpolation markers
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("${", "$${")
    )
    return f'"{escaped}"'


def _key(key: str) -> str:
    if key and (key[0].isalpha() or key[0] == "_") and all(c.isalnum() or c in "_-" for c in key):
        return key
    return json.dumps(key)
