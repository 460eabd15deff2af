"""
Dynamic block expansion.

Turns a ForEachExpand node into an ordered sequence of concrete blocks,
one per element of its collection. Each element is evaluated in its own
child scope; nothing is shared between iterations.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .ast_nodes import BlockTemplate, Expression, ForEachExpand
from .environment import Environment
from .errors import TypeMismatchError
from .values import Value, ValueType

logger = logging.getLogger(__name__)

MAP_ORDER_INSERTION = "insertion"
MAP_ORDER_LEXICAL = "lexical"
MAP_ORDERS = (MAP_ORDER_INSERTION, MAP_ORDER_LEXICAL)


@dataclass(frozen=True)
class CollectionItem:
    """One element of an iterated collection: list index or map key, and value."""
    key: Union[int, str]
    value: Value

    def key_value(self) -> Value:
        if isinstance(self.key, int):
            return Value.number(self.key)
        return Value.string(self.key)


@dataclass(frozen=True)
class ExpandedBlock:
    """
    A concrete block with every expression evaluated.

    Attributes:
        block_type: Block type name (e.g. "ingress"), may be None
        key: Key of the collection item that produced the block, or None
            for a static block
        attributes: Attribute name to Value, in declaration order
        blocks: Nested block type to the blocks of that type, in order
    """
    block_type: Optional[str]
    key: Optional[Union[int, str]] = None
    attributes: Mapping[str, Value] = field(default_factory=dict)
    blocks: Mapping[str, Tuple["ExpandedBlock", ...]] = field(default_factory=dict)

    def to_value(self) -> Value:
        """
        Merge attributes and nested blocks into one map value.

        Nested blocks appear as lists of maps under their type name,
        the way Terraform exposes them to other expressions.
        """
        entries: Dict[str, Value] = dict(self.attributes)
        for block_type, nested in self.blocks.items():
            entries[block_type] = Value.sequence(block.to_value() for block in nested)
        return Value.mapping(entries)

    def to_dict(self) -> dict:
        return self.to_value().to_python()


def iterate_collection(collection: Value, map_order: str = MAP_ORDER_INSERTION) -> List[CollectionItem]:
    """
    List the items of a collection in iteration order.

    Lists iterate by ascending index. Maps iterate in insertion order, or
    by sorted key when map_order is "lexical".

    Raises:
        TypeMismatchError: If the value is neither a list nor a map
    """
    if collection.tag == ValueType.LIST:
        return [CollectionItem(index, item) for index, item in enumerate(collection.raw)]
    if collection.tag == ValueType.MAP:
        keys = list(collection.raw)
        if map_order == MAP_ORDER_LEXICAL:
            keys.sort()
        return [CollectionItem(key, collection.raw[key]) for key in keys]
    raise TypeMismatchError(
        f"for_each requires a list or map, got {collection.tag.value}"
    )


class BlockExpander:
    """
    Expands dynamic blocks and renders block templates.

    Attribute expressions are evaluated by the owning Evaluator.
    """

    def __init__(self, evaluator):
        self.evaluator = evaluator

    def expand(self, node: ForEachExpand, env: Environment) -> List[ExpandedBlock]:
        """
        Expand a dynamic block into one concrete block per collection item.

        Args:
            node: ForEachExpand to expand
            env: Enclosing scope

        Returns:
            ExpandedBlocks in iteration order (empty for an empty collection)

        Raises:
            EvaluationError: On the first failing item; no partial result
        """
        collection = self.evaluator.evaluate(node.collection, env)
        items = iterate_collection(collection, self.evaluator.map_order)
        block_type = self.block_type_of(node)

        logger.debug(f"Expanding {len(items)} '{block_type}' blocks")

        blocks = []
        for item in items:
            scope = env.child(self._item_bindings(node, item))
            blocks.append(self._render_body(node.body, scope, block_type, item.key))
        return blocks

    def render(
        self,
        template: BlockTemplate,
        env: Environment,
        key: Optional[Union[int, str]] = None,
    ) -> ExpandedBlock:
        """
        Evaluate every attribute and nested block of a template.

        Args:
            template: BlockTemplate to render
            env: Scope to evaluate in
            key: Collection key when rendering a dynamic block's content

        Returns:
            ExpandedBlock
        """
        attributes = {
            name: self.evaluator.evaluate(expression, env)
            for name, expression in template.attributes
        }

        nested: Dict[str, List[ExpandedBlock]] = {}
        for block in template.blocks:
            if isinstance(block, ForEachExpand):
                expanded = self.expand(block, env)
                nested.setdefault(self.block_type_of(block), []).extend(expanded)
            else:
                nested.setdefault(block.block_type, []).append(self.render(block, env))

        return ExpandedBlock(
            block_type=template.block_type,
            key=key,
            attributes=attributes,
            blocks={name: tuple(items) for name, items in nested.items()},
        )

    def _render_body(
        self,
        body: Union[BlockTemplate, Expression],
        scope: Environment,
        block_type: Optional[str],
        key: Union[int, str],
    ) -> ExpandedBlock:
        if isinstance(body, BlockTemplate):
            rendered = self.render(body, scope, key)
            return ExpandedBlock(block_type, key, rendered.attributes, rendered.blocks)

        value = self.evaluator.evaluate(body, scope)
        if value.tag != ValueType.MAP:
            raise TypeMismatchError(
                f"Dynamic block content must be an object, got {value.tag.value}", body
            )
        return ExpandedBlock(block_type, key, value.as_map())

    @staticmethod
    def block_type_of(node: ForEachExpand) -> Optional[str]:
        """Name of the blocks a dynamic block generates."""
        if node.block_type or node.iterator:
            return node.block_type or node.iterator
        if isinstance(node.body, BlockTemplate):
            return node.body.block_type
        return None

    @staticmethod
    def _item_bindings(node: ForEachExpand, item: CollectionItem) -> Dict[str, Value]:
        key = item.key_value()
        bindings = {"key": key, "value": item.value}
        if node.iterator:
            bindings[node.iterator] = Value.mapping({"key": key, "value": item.value})
        return bindings
