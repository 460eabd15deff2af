"""
Terraform configuration loader.

This module parses Terraform HCL files with python-hcl2, turns their
attribute expressions into expression trees, and renders variables,
locals, resources (with their dynamic blocks) and outputs into concrete
values.

Blocks are evaluated in declaration order (files sorted by name). There
is no dependency graph: an expression may only refer to locals and
resources declared before it.
"""

import glob
import math
import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import hcl2

from .ast_nodes import BlockTemplate, Expression, ForEachExpand, VariableRef
from .block_expander import ExpandedBlock, MAP_ORDER_INSERTION, iterate_collection
from .environment import Environment
from .errors import EvaluationError, TypeMismatchError, UndefinedVariableError
from .evaluator import Evaluator
from .expression_parser import hcl_to_expression, is_meta_key, parse_template, unquote
from .values import Value, ValueType

logger = logging.getLogger(__name__)

# Resource arguments that steer expansion instead of becoming attributes
META_ARGUMENTS = {"count", "for_each", "depends_on", "lifecycle", "provider", "provisioner", "connection"}


@dataclass
class TerraformVariable:
    """
    Represents a Terraform variable definition.

    Attributes:
        name: Variable name
        type: Variable type (string, number, bool, list, map, etc.)
        default: Default value (None if no default)
        description: Human-readable description
        sensitive: Whether variable is marked as sensitive
    """
    name: str
    type: str = "string"
    default: Optional[Value] = None
    description: str = ""
    sensitive: bool = False

    def is_required(self) -> bool:
        """
        Check if variable is required (has no default).

        Returns:
            True if variable must be provided
        """
        return self.default is None

    def __repr__(self) -> str:
        return (
            f"TerraformVariable(name='{self.name}', type='{self.type}', "
            f"required={self.is_required()}, sensitive={self.sensitive})"
        )


@dataclass
class ResourceDefinition:
    """A resource block whose attributes are still expressions."""
    type: str
    name: str
    template: BlockTemplate
    count: Optional[Expression] = None
    for_each: Optional[Expression] = None

    @property
    def address(self) -> str:
        return f"{self.type}.{self.name}"


@dataclass
class RenderedResource:
    """One concrete resource instance."""
    type: str
    name: str
    body: ExpandedBlock
    index: Optional[Union[int, str]] = None

    @property
    def address(self) -> str:
        if self.index is None:
            return f"{self.type}.{self.name}"
        if isinstance(self.index, int):
            return f"{self.type}.{self.name}[{self.index}]"
        return f'{self.type}.{self.name}["{self.index}"]'

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "type": self.type,
            "name": self.name,
            "index": self.index,
            "values": self.body.to_dict(),
        }


@dataclass
class RenderedOutput:
    name: str
    value: Value
    description: str = ""
    sensitive: bool = False


@dataclass
class RenderedConfig:
    """Everything a render pass produced, in declaration order."""
    variables: Dict[str, Value] = field(default_factory=dict)
    locals: Dict[str, Value] = field(default_factory=dict)
    resources: List[RenderedResource] = field(default_factory=list)
    outputs: Dict[str, RenderedOutput] = field(default_factory=dict)
    sensitive_variables: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """
        Convert to plain Python data suitable for JSON.

        Sensitive variables and outputs are replaced by a marker.
        """
        return {
            "variables": {
                name: SENSITIVE_MARKER if name in self.sensitive_variables else value.to_python()
                for name, value in self.variables.items()
            },
            "locals": {name: value.to_python() for name, value in self.locals.items()},
            "resources": [resource.to_dict() for resource in self.resources],
            "outputs": {
                name: SENSITIVE_MARKER if output.sensitive else output.value.to_python()
                for name, output in self.outputs.items()
            },
        }

    def sensitive_values(self) -> List[Union[str, int, float]]:
        """String and number values of sensitive variables, for output redaction."""
        values = []
        for name in self.sensitive_variables:
            value = self.variables.get(name)
            if value is not None and value.tag in (ValueType.STRING, ValueType.NUMBER):
                values.append(value.raw)
        return values


SENSITIVE_MARKER = "(sensitive value)"


class ConfigLoader:
    """
    Loader and renderer for a directory of Terraform configuration files.

    Extracts variable definitions, locals, resources and outputs, and
    evaluates them against variable values.
    """

    def __init__(self, project_path: str, map_order: str = MAP_ORDER_INSERTION):
        """
        Initialize loader for a Terraform project.

        Args:
            project_path: Path to Terraform project directory
            map_order: Map iteration order for dynamic blocks and for_each
        """
        self.project_path = project_path
        self.evaluator = Evaluator(map_order=map_order)
        self._files: Optional[List[Tuple[str, dict]]] = None
        self._variables: Optional[List[TerraformVariable]] = None

    def _tf_files(self) -> List[str]:
        return sorted(glob.glob(os.path.join(self.project_path, "*.tf")))

    def _load_files(self) -> List[Tuple[str, dict]]:
        """
        Parse every .tf file in the project once.

        Returns:
            List of (file path, parsed hcl2 dict), sorted by file name

        Raises:
            ValueError: If a file cannot be parsed
        """
        if self._files is not None:
            return self._files

        tf_files = self._tf_files()
        if not tf_files:
            logger.warning(f"No .tf files found in {self.project_path}")

        logger.info(f"Found {len(tf_files)} Terraform files")

        files = []
        for tf_file in tf_files:
            try:
                with open(tf_file, 'r', encoding='utf-8') as f:
                    parsed = hcl2.load(f)
            except Exception as e:
                logger.error(f"HCL parse error in {tf_file}: {e}")
                raise ValueError(f"Failed to parse {os.path.basename(tf_file)}: {e}")
            files.append((tf_file, parsed))

        self._files = files
        return self._files

    def _blocks(self, block_type: str) -> List[dict]:
        """All top-level blocks of one type, across files, in order."""
        blocks = []
        for _, parsed in self._load_files():
            for block in parsed.get(block_type, []):
                blocks.append(block)
        return blocks

    # -- variables --------------------------------------------------------

    def parse_variables(self) -> List[TerraformVariable]:
        """
        Parse all .tf files in project for variable blocks.

        Returns:
            List of TerraformVariable objects

        Raises:
            ValueError: If a file cannot be parsed
        """
        if self._variables is not None:
            return self._variables

        variables = []
        for var_block in self._blocks('variable'):
            for var_name, var_config in _labelled(var_block):
                variables.append(self._create_variable(var_name, var_config))

        self._variables = variables
        logger.info(f"Parsed {len(variables)} variables")

        return self._variables

    def _create_variable(self, name: str, config: dict) -> TerraformVariable:
        """
        Create TerraformVariable from parsed HCL config.

        Args:
            name: Variable name
            config: Parsed variable configuration dict

        Returns:
            TerraformVariable object
        """
        # Extract type (default to string if not specified)
        var_type = self._extract_type(config.get('type', 'string'))

        # Defaults are constant expressions: evaluate them in an empty scope
        default = None
        if 'default' in config:
            try:
                default = self.evaluator.evaluate(hcl_to_expression(config['default']), Environment())
            except EvaluationError as e:
                raise e.with_context(f"var.{name} default")

        description = unquote(str(config.get('description', '')))
        sensitive = _constant_bool(config.get('sensitive', False))

        return TerraformVariable(
            name=name,
            type=var_type,
            default=default,
            description=description,
            sensitive=sensitive,
        )

    def _extract_type(self, type_value: Any) -> str:
        """
        Extract and normalize Terraform type.

        Args:
            type_value: Type value from HCL (hcl2 renders type
                expressions as "${string}")

        Returns:
            Normalized type string
        """
        if isinstance(type_value, str):
            text = type_value.strip()
            if text.startswith("${") and text.endswith("}"):
                text = text[2:-1].strip()
            return text
        else:
            # For complex types, convert to string representation
            return str(type_value)

    def resolve_variables(self, overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Value]:
        """
        Merge variable defaults with caller-supplied values.

        Args:
            overrides: Name to value (Python data or Value), e.g. from
                .tfvars files and -var arguments

        Returns:
            Dict of variable name to Value, in declaration order

        Raises:
            UndefinedVariableError: If a required variable has no value
        """
        overrides = dict(overrides or {})
        resolved: Dict[str, Value] = {}

        for variable in self.parse_variables():
            if variable.name in overrides:
                resolved[variable.name] = Value.from_python(overrides.pop(variable.name))
            elif variable.is_required():
                raise UndefinedVariableError(
                    f"No value for required variable '{variable.name}'"
                )
            else:
                resolved[variable.name] = variable.default

        for name in overrides:
            logger.warning(f"Value given for undeclared variable '{name}', ignoring")

        return resolved

    # -- resources --------------------------------------------------------

    def parse_resources(self) -> List[ResourceDefinition]:
        """
        Parse all resource blocks into templates.

        Returns:
            List of ResourceDefinition in declaration order
        """
        resources = []
        for resource_block in self._blocks('resource'):
            for resource_type, named in _labelled(resource_block):
                for resource_name, body in _labelled(named):
                    resources.append(self._create_resource(resource_type, resource_name, body))

        for unsupported in ('data', 'module'):
            if self._blocks(unsupported):
                logger.warning(f"Ignoring '{unsupported}' blocks: not supported")

        return resources

    def _create_resource(self, resource_type: str, name: str, body: dict) -> ResourceDefinition:
        count = hcl_to_expression(body['count']) if 'count' in body else None
        for_each = hcl_to_expression(body['for_each']) if 'for_each' in body else None
        template = build_block_template(resource_type, body, skip=META_ARGUMENTS)
        return ResourceDefinition(resource_type, name, template, count=count, for_each=for_each)

    # -- rendering --------------------------------------------------------

    def render(self, overrides: Optional[Mapping[str, Any]] = None) -> RenderedConfig:
        """
        Evaluate the whole configuration.

        Args:
            overrides: Variable values, see resolve_variables()

        Returns:
            RenderedConfig

        Raises:
            EvaluationError: On the first failing expression, with the
                block address in the message
            ValueError: If a file cannot be parsed
        """
        variables = self.resolve_variables(overrides)
        result = RenderedConfig(
            variables=variables,
            sensitive_variables=[v.name for v in self.parse_variables() if v.sensitive],
        )

        root = Environment({"var": Value.mapping(variables)})

        # locals
        local_values: Dict[str, Value] = {}
        for locals_block in self._blocks('locals'):
            for name, raw in locals_block.items():
                if is_meta_key(name):
                    continue
                scope = root.child({"local": Value.mapping(local_values)})
                local_values[name] = self._evaluate_in(hcl_to_expression(raw), scope, f"local.{name}")
        result.locals = local_values
        scope = root.child({"local": Value.mapping(local_values)})

        # resources, each visible to the ones after it
        resource_values: Dict[str, Dict[str, Value]] = {}
        for definition in self.parse_resources():
            instances, exposed = self._render_resource(definition, scope)
            result.resources.extend(instances)
            resource_values.setdefault(definition.type, {})[definition.name] = exposed
            scope = root.child({
                "local": Value.mapping(local_values),
                **{rtype: Value.mapping(named) for rtype, named in resource_values.items()},
            })

        # outputs
        for output_block in self._blocks('output'):
            for name, config in _labelled(output_block):
                if 'value' not in config:
                    raise UndefinedVariableError(f"output.{name}: missing 'value'")
                value = self._evaluate_in(hcl_to_expression(config['value']), scope, f"output.{name}")
                result.outputs[name] = RenderedOutput(
                    name=name,
                    value=value,
                    description=unquote(str(config.get('description', ''))),
                    sensitive=_constant_bool(config.get('sensitive', False)),
                )

        logger.info(
            f"Rendered {len(result.resources)} resource instances, "
            f"{len(result.outputs)} outputs"
        )
        return result

    def _render_resource(
        self,
        definition: ResourceDefinition,
        scope: Environment,
    ) -> Tuple[List[RenderedResource], Value]:
        """
        Render every instance of one resource.

        Returns:
            (rendered instances, value other expressions see for the
            resource: a map, a list of maps with count, or a map of maps
            with for_each)
        """
        address = definition.address

        if definition.count is not None:
            count = self._evaluate_in(definition.count, scope, f"{address} count")
            if count.tag != ValueType.NUMBER or not math.isfinite(count.raw) \
                    or count.raw < 0 or count.raw != int(count.raw):
                raise TypeMismatchError(
                    f"{address}: count must be a non-negative whole number, got {count!r}",
                    definition.count,
                )
            instances = []
            for index in range(int(count.raw)):
                instance_scope = scope.child({"count": Value.mapping({"index": Value.number(index)})})
                body = self._render_in(definition.template, instance_scope, f"{address}[{index}]")
                instances.append(RenderedResource(definition.type, definition.name, body, index))
            return instances, Value.sequence(r.body.to_value() for r in instances)

        if definition.for_each is not None:
            collection = self._evaluate_in(definition.for_each, scope, f"{address} for_each")
            try:
                items = iterate_collection(collection, self.evaluator.map_order)
                keys = [
                    item.value.as_string() if collection.tag == ValueType.LIST else item.key
                    for item in items
                ]
            except EvaluationError as e:
                raise e.with_context(f"{address} for_each")
            # A list of strings acts as a set
            unique = {}
            for key, item in zip(keys, items):
                unique.setdefault(key, item)
            instances = []
            for key, item in unique.items():
                each = Value.mapping({"key": Value.string(key), "value": item.value})
                body = self._render_in(definition.template, scope.child({"each": each}), f'{address}["{key}"]')
                instances.append(RenderedResource(definition.type, definition.name, body, key))
            return instances, Value.mapping({r.index: r.body.to_value() for r in instances})

        body = self._render_in(definition.template, scope, address)
        return [RenderedResource(definition.type, definition.name, body)], body.to_value()

    def _evaluate_in(self, expression: Expression, scope: Environment, context: str) -> Value:
        try:
            return self.evaluator.evaluate(expression, scope)
        except EvaluationError as e:
            raise e.with_context(context)

    def _render_in(self, template: BlockTemplate, scope: Environment, context: str) -> ExpandedBlock:
        try:
            return self.evaluator.expander.render(template, scope)
        except EvaluationError as e:
            raise e.with_context(context)

    def validate_syntax(self) -> Tuple[bool, Optional[str]]:
        """
        Validate Terraform syntax by attempting to parse all files.

        Returns:
            Tuple of (is_valid, error_message)
            If valid, error_message is None
        """
        tf_files = self._tf_files()

        if not tf_files:
            return False, "No .tf files found in project"

        for tf_file in tf_files:
            try:
                with open(tf_file, 'r', encoding='utf-8') as f:
                    hcl2.load(f)
            except Exception as e:
                return False, f"Syntax error in {os.path.basename(tf_file)}: {str(e)}"

        return True, None


def build_block_template(block_type: Optional[str], body: dict, skip=frozenset()) -> BlockTemplate:
    """
    Convert a python-hcl2 block body into a BlockTemplate.

    ``dynamic`` entries become ForEachExpand nodes. Other values that are
    lists of dicts are taken as nested blocks (python-hcl2 renders blocks
    that way); everything else is an attribute.

    Args:
        block_type: Type name of the block
        body: Parsed block body
        skip: Argument names to leave out (resource meta-arguments)
    """
    attributes = []
    blocks = []

    for key, raw in body.items():
        if is_meta_key(key) or key in skip:
            continue
        if key == "dynamic":
            for dynamic_block in raw:
                for label, dynamic_body in _labelled(dynamic_block):
                    blocks.append(_build_dynamic(label, dynamic_body))
        elif isinstance(raw, list) and raw and all(isinstance(item, dict) for item in raw):
            for nested in raw:
                blocks.append(build_block_template(key, nested))
        else:
            attributes.append((key, hcl_to_expression(raw)))

    return BlockTemplate(block_type=block_type, attributes=tuple(attributes), blocks=tuple(blocks))


def _build_dynamic(label: str, body: dict) -> ForEachExpand:
    if 'for_each' not in body:
        raise ValueError(f"dynamic \"{label}\" block has no for_each")

    iterator = label
    if 'iterator' in body:
        iterator_expr = parse_template(str(body['iterator']))
        if not isinstance(iterator_expr, VariableRef):
            raise ValueError(f"dynamic \"{label}\" iterator must be a bare name")
        iterator = iterator_expr.name

    content = body.get('content', [{}])
    if isinstance(content, list):
        content = content[0] if content else {}

    return ForEachExpand(
        collection=hcl_to_expression(body['for_each']),
        body=build_block_template(label, content),
        iterator=iterator,
        block_type=label,
    )


def _labelled(block: dict):
    """Iterate (label, body) pairs of a labelled block, unquoting labels."""
    for label, body in block.items():
        if is_meta_key(label):
            continue
        yield unquote(label), body


def _constant_bool(raw: Any) -> bool:
    """Read a literal bool argument such as ``sensitive = true``."""
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().strip('"').strip("${}").lower() == "true"
