#!/usr/bin/env python3
"""Command line tool for finding the shortest synthesis path between two items."""

from __future__ import annotations

import argparse
import csv
import enum
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Union

import networkx as nx

DATA_FILE = Path(__file__).parent / "data" / "items.csv"

ROW_LENGTH = 25
EDGE_WEIGHT = 1
PATH_SEPARATOR = " -> "
NO_PATH_TEXT = "no path"
SYNTHESIS_LABEL = "Synthesis"
MORPH_LABEL = "Morph"

logger = logging.getLogger(__name__)


class DatasetError(Exception):
    """Raised when the item dataset cannot be turned into a graph."""


class MalformedRowError(DatasetError):
    def __init__(self, line_number: int, message: str):
        super().__init__(f"Line {line_number}: {message}")
        self.line_number = line_number


class UnreadableDatasetError(DatasetError):
    def __init__(self, path: Path, error: OSError):
        super().__init__(f"Cannot read item data at {path}: {error.strerror or error}")
        self.path = path


class DuplicateItemError(DatasetError):
    def __init__(self, name: str):
        super().__init__(f"Item {name!r} is defined more than once")
        self.name = name


class UnknownItemError(DatasetError):
    def __init__(self, name: str, role: str):
        super().__init__(f"Unknown item {name!r} referenced as {role}")
        self.name = name
        self.role = role


class MissingRecipeError(DatasetError):
    def __init__(self, name: str):
        super().__init__(
            f"Item {name!r} is used as a morph base but no synthesis produces it"
        )
        self.name = name


class ItemNotFoundError(LookupError):
    """Raised when a query names an item that is not in the graph."""

    def __init__(self, name: str):
        super().__init__(f"No item named {name!r}")
        self.name = name


# Records


class ItemNumberKind(enum.Enum):
    NONE = "none"
    MATERIAL = "material"
    RECIPE = "recipe"


@dataclass(frozen=True)
class ItemNumber:
    kind: ItemNumberKind = ItemNumberKind.NONE
    value: int | None = None

    @classmethod
    def material(cls, value: int) -> ItemNumber:
        return cls(ItemNumberKind.MATERIAL, value)

    @classmethod
    def recipe(cls, value: int) -> ItemNumber:
        return cls(ItemNumberKind.RECIPE, value)

    @property
    def is_recipe(self) -> bool:
        return self.kind is ItemNumberKind.RECIPE


@dataclass(frozen=True)
class ItemRecord:
    name: str
    fire: bool = False
    ice: bool = False
    light: bool = False
    wind: bool = False
    category1: str | None = None
    category2: str | None = None
    category3: str | None = None
    category4: str | None = None
    item_number: ItemNumber = ItemNumber()

    @property
    def categories(self) -> tuple[str, ...]:
        slots = (self.category1, self.category2, self.category3, self.category4)
        return tuple(tag for tag in slots if tag is not None)


@dataclass(frozen=True)
class SynthesisRecord:
    """A recipe row: ``name`` is the item the synthesis produces."""

    name: str
    chapter: str = ""
    synthesis_type: str = ""
    ingredient1: str | None = None
    ingredient2: str | None = None
    ingredient3: str | None = None
    ingredient4: str | None = None
    add_category1: str | None = None
    add_category2: str | None = None
    extra_synth_quantity: int | None = None
    effect_spread: int | None = None

    def ingredients(self) -> list[str]:
        slots = (self.ingredient1, self.ingredient2, self.ingredient3, self.ingredient4)
        return [specifier for specifier in slots if specifier is not None]


@dataclass(frozen=True)
class MorphRecord:
    """Upgrade of the synthesis producing ``from_recipe`` into ``name``."""

    name: str
    from_recipe: str
    from_requiring: str
    chapter: str = ""


def _optional_text(value: str) -> str | None:
    return value if value else None


def is_unsigned_text(value: str) -> bool:
    """Return ``True`` for plain ASCII digits with an optional leading ``+``."""
    digits = value[1:] if value.startswith("+") else value
    return digits.isascii() and digits.isdigit()


def _parse_small_number(value: str, line_number: int, column: str) -> int:
    if not is_unsigned_text(value):
        raise MalformedRowError(line_number, f"Invalid {column} {value!r}")
    number = int(value)
    if not 0 <= number <= 255:
        raise MalformedRowError(
            line_number, f"{column} must be between 0 and 255 (got {number})"
        )
    return number


def _optional_number(value: str, line_number: int, column: str) -> int | None:
    if not value:
        return None
    return _parse_small_number(value, line_number, column)


def parse_row(
    row: list[str], line_number: int
) -> tuple[ItemRecord, SynthesisRecord | None, list[MorphRecord]]:
    """Turn one positional CSV row into its item, synthesis and morph records."""

    if len(row) != ROW_LENGTH:
        raise MalformedRowError(
            line_number, f"Expected {ROW_LENGTH} fields, found {len(row)}"
        )

    name = row[0]
    if row[9]:
        item_number = ItemNumber.material(
            _parse_small_number(row[9], line_number, "material number")
        )
    elif row[10]:
        item_number = ItemNumber.recipe(
            _parse_small_number(row[10], line_number, "recipe number")
        )
    else:
        item_number = ItemNumber()

    item = ItemRecord(
        name=name,
        fire=bool(row[1]),
        ice=bool(row[2]),
        light=bool(row[3]),
        wind=bool(row[4]),
        category1=_optional_text(row[5]),
        category2=_optional_text(row[6]),
        category3=_optional_text(row[7]),
        category4=_optional_text(row[8]),
        item_number=item_number,
    )

    if not item_number.is_recipe:
        return item, None, []

    chapter = row[11]
    synthesis = SynthesisRecord(
        name=name,
        chapter=chapter,
        synthesis_type=row[12],
        ingredient1=_optional_text(row[13]),
        ingredient2=_optional_text(row[14]),
        ingredient3=_optional_text(row[15]),
        ingredient4=_optional_text(row[16]),
        add_category1=_optional_text(row[17]),
        add_category2=_optional_text(row[18]),
        extra_synth_quantity=_optional_number(
            row[23], line_number, "extra synthesis quantity"
        ),
        effect_spread=_optional_number(row[24], line_number, "effect spread"),
    )

    morphs: list[MorphRecord] = []
    for recipe_column, requiring_column in ((19, 20), (21, 22)):
        from_recipe = row[recipe_column]
        from_requiring = row[requiring_column]
        if from_recipe and from_requiring:
            morphs.append(
                MorphRecord(
                    name=name,
                    from_recipe=from_recipe,
                    from_requiring=from_requiring,
                    chapter=chapter,
                )
            )

    return item, synthesis, morphs


def load_records(
    csv_path: Path,
) -> tuple[list[ItemRecord], list[SynthesisRecord], list[MorphRecord]]:
    """Load item, synthesis and morph records from ``csv_path``."""

    items: list[ItemRecord] = []
    syntheses: list[SynthesisRecord] = []
    morphs: list[MorphRecord] = []
    try:
        with csv_path.open(newline="", encoding="utf-8") as handle:
            reader = csv.reader(handle)
            try:
                next(reader, None)
                for row in reader:
                    if not row:
                        continue
                    item, synthesis, row_morphs = parse_row(row, reader.line_num)
                    items.append(item)
                    if synthesis is not None:
                        syntheses.append(synthesis)
                    morphs.extend(row_morphs)
            except UnicodeDecodeError as exc:
                raise MalformedRowError(
                    reader.line_num + 1, "Text is not valid UTF-8"
                ) from exc
            except csv.Error as exc:
                raise MalformedRowError(reader.line_num, f"Unreadable CSV ({exc})") from exc
    except FileNotFoundError as exc:
        raise FileNotFoundError(
            f"Item data not found at {csv_path}. Did you download the dataset?"
        ) from exc
    except OSError as exc:
        raise UnreadableDatasetError(csv_path, exc) from exc

    logger.info(
        "Loaded %d items, %d syntheses and %d morphs from %s",
        len(items),
        len(syntheses),
        len(morphs),
        csv_path,
    )
    return items, syntheses, morphs


# Graph model


@dataclass(frozen=True)
class ItemNode:
    name: str
    fire: bool = False
    ice: bool = False
    light: bool = False
    wind: bool = False
    categories: tuple[str, ...] = ()
    item_number: ItemNumber = ItemNumber()

    @property
    def label(self) -> str:
        return self.name

    def matches(self, specifier: str) -> bool:
        """Return ``True`` when ``specifier`` equals the name or any category."""
        return specifier == self.name or specifier in self.categories


@dataclass(frozen=True)
class SynthesisNode:
    chapter: str = ""
    synthesis_type: str = ""
    add_category1: str | None = None
    add_category2: str | None = None
    extra_synth_quantity: int | None = None
    effect_spread: int | None = None

    @property
    def label(self) -> str:
        return SYNTHESIS_LABEL


@dataclass(frozen=True)
class MorphNode:
    @property
    def label(self) -> str:
        return MORPH_LABEL


Node = Union[ItemNode, SynthesisNode, MorphNode]


class SynthesisGraph:
    """Arena of nodes addressed by integer handles, wired by directed edges.

    Handles are assigned in insertion order. Edges point from what is consumed
    to what is produced, so a path always follows the crafting direction.
    """

    def __init__(self) -> None:
        self._nodes: list[Node] = []
        self._digraph = nx.DiGraph()

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def digraph(self) -> nx.DiGraph:
        return self._digraph

    @property
    def frozen(self) -> bool:
        return nx.is_frozen(self._digraph)

    def freeze(self) -> None:
        """Reject any further nodes or edges."""
        nx.freeze(self._digraph)

    def add_node(self, node: Node) -> int:
        handle = len(self._nodes)
        self._digraph.add_node(handle)
        self._nodes.append(node)
        return handle

    def add_edge(self, source: int, target: int) -> None:
        self._digraph.add_edge(source, target, weight=EDGE_WEIGHT)

    def node(self, handle: int) -> Node:
        return self._nodes[handle]

    def label(self, handle: int) -> str:
        return self._nodes[handle].label

    def labels(self) -> list[str]:
        return [node.label for node in self._nodes]

    def handles(self) -> range:
        return range(len(self._nodes))

    def item_handles(self) -> Iterator[int]:
        for handle, node in enumerate(self._nodes):
            if isinstance(node, ItemNode):
                yield handle

    def successors(self, handle: int) -> list[int]:
        return sorted(self._digraph.successors(handle))

    def predecessors(self, handle: int) -> list[int]:
        return sorted(self._digraph.predecessors(handle))

    def in_degree(self, handle: int) -> int:
        return self._digraph.in_degree(handle)

    def out_degree(self, handle: int) -> int:
        return self._digraph.out_degree(handle)

    def has_edge(self, source: int, target: int) -> bool:
        return self._digraph.has_edge(source, target)

    def find_item(self, name: str) -> int | None:
        for handle in self.item_handles():
            if self._nodes[handle].name == name:
                return handle
        return None

    def item_names(self) -> list[str]:
        return [self._nodes[handle].name for handle in self.item_handles()]


# Graph builder


def _item_node(record: ItemRecord) -> ItemNode:
    return ItemNode(
        name=record.name,
        fire=record.fire,
        ice=record.ice,
        light=record.light,
        wind=record.wind,
        categories=record.categories,
        item_number=record.item_number,
    )


def _synthesis_node(record: SynthesisRecord) -> SynthesisNode:
    return SynthesisNode(
        chapter=record.chapter,
        synthesis_type=record.synthesis_type,
        add_category1=record.add_category1,
        add_category2=record.add_category2,
        extra_synth_quantity=record.extra_synth_quantity,
        effect_spread=record.effect_spread,
    )


def _lookup(item_indices: dict[str, int], name: str, role: str) -> int:
    try:
        return item_indices[name]
    except KeyError as exc:
        raise UnknownItemError(name, role) from exc


def _base_synthesis(graph: SynthesisGraph, item_handle: int, name: str) -> int:
    candidates = [
        handle
        for handle in graph.predecessors(item_handle)
        if isinstance(graph.node(handle), SynthesisNode)
    ]
    if not candidates:
        raise MissingRecipeError(name)
    if len(candidates) > 1:
        logger.warning(
            "Item %r has %d producing syntheses; using the first one defined",
            name,
            len(candidates),
        )
    return candidates[0]


def build_graph(
    items: list[ItemRecord],
    syntheses: list[SynthesisRecord],
    morphs: list[MorphRecord],
) -> SynthesisGraph:
    """Build the synthesis graph from parsed records.

    Raises a :class:`DatasetError` subclass when a referenced item or recipe
    cannot be resolved; no partially built graph is ever returned.
    """

    graph = SynthesisGraph()
    item_indices: dict[str, int] = {}

    for record in items:
        if record.name in item_indices:
            raise DuplicateItemError(record.name)
        item_indices[record.name] = graph.add_node(_item_node(record))

    item_handles = list(item_indices.values())
    for record in syntheses:
        output_handle = _lookup(item_indices, record.name, "synthesis output")
        synthesis_handle = graph.add_node(_synthesis_node(record))
        graph.add_edge(synthesis_handle, output_handle)

        for specifier in record.ingredients():
            matched = [
                handle for handle in item_handles if graph.node(handle).matches(specifier)
            ]
            if not matched:
                logger.debug(
                    "Ingredient %r of %r matches no item", specifier, record.name
                )
            for ingredient_handle in matched:
                graph.add_edge(ingredient_handle, synthesis_handle)

    for record in morphs:
        result_handle = _lookup(item_indices, record.name, "morph result")
        required_handle = _lookup(
            item_indices, record.from_requiring, "morph requirement"
        )
        base_item_handle = _lookup(item_indices, record.from_recipe, "morph base")
        recipe_handle = _base_synthesis(graph, base_item_handle, record.from_recipe)

        morph_handle = graph.add_node(MorphNode())
        graph.add_edge(recipe_handle, morph_handle)
        graph.add_edge(required_handle, morph_handle)
        graph.add_edge(morph_handle, result_handle)

    logger.info(
        "Built graph with %d nodes and %d edges",
        len(graph),
        graph.digraph.number_of_edges(),
    )
    graph.freeze()
    return graph


def load_graph(csv_path: Path) -> SynthesisGraph:
    return build_graph(*load_records(csv_path))


# Path queries


def find_item(graph: SynthesisGraph, name: str) -> int | None:
    return graph.find_item(name)


def find_matching_items(query: str, graph: SynthesisGraph) -> list[str]:
    """Return item names containing ``query``, ignoring case."""

    needle = query.strip().lower()
    if not needle:
        return []
    return sorted(name for name in graph.item_names() if needle in name.lower())


def shortest_path(
    graph: SynthesisGraph, start_name: str, goal_name: str
) -> list[str] | None:
    """Return node labels along a shortest path from ``start_name`` to ``goal_name``.

    Raises :class:`ItemNotFoundError` if either name is not an item, and
    returns ``None`` when the goal cannot be reached from the start.
    """

    start = find_item(graph, start_name)
    if start is None:
        raise ItemNotFoundError(start_name)
    goal = find_item(graph, goal_name)
    if goal is None:
        raise ItemNotFoundError(goal_name)

    try:
        handles = nx.shortest_path(graph.digraph, start, goal)
    except nx.NetworkXNoPath:
        return None
    return [graph.label(handle) for handle in handles]


def render_path(labels: list[str] | None) -> str:
    if labels is None:
        return NO_PATH_TEXT
    return PATH_SEPARATOR.join(labels)


# Interactive session


def prompt_for_item(
    graph: SynthesisGraph,
    prompt: str,
    read: Callable[[str], str],
    write: Callable[[str], None],
) -> str:
    """Keep asking until the answer names an item, then return it."""

    while True:
        name = read(prompt)
        if find_item(graph, name) is not None:
            return name
        suggestions = find_matching_items(name, graph)[:5]
        if suggestions:
            write(f"No item named {name!r}. Did you mean: {', '.join(suggestions)}?")
        else:
            write(f"No item named {name!r}.")


def run_session(
    graph: SynthesisGraph,
    read: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    """Answer start/goal queries until the input stream is exhausted."""

    try:
        while True:
            start = prompt_for_item(graph, "start: ", read, write)
            goal = prompt_for_item(graph, "goal: ", read, write)
            labels = shortest_path(graph, start, goal)
            write(f"shortest path: {render_path(labels)}")
            write("")
    except EOFError:
        logger.debug("Input closed, ending session")


# CLI


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )


def parse_args(argv):
    parser = argparse.ArgumentParser(
        description="Find the shortest synthesis path between two items."
    )
    parser.add_argument(
        "-i",
        "--items",
        type=Path,
        required=True,
        help="CSV file containing all items",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List all available items and exit",
    )
    parser.add_argument("--start", help="Run a single query starting from this item")
    parser.add_argument("--goal", help="Target item for a single query")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log graph construction details to stderr",
    )
    args = parser.parse_args(argv)
    if (args.start is None) != (args.goal is None):
        parser.error("--start and --goal must be given together")
    return args


def main(argv=None):
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.verbose)

    try:
        graph = load_graph(args.items)
    except (DatasetError, FileNotFoundError) as exc:
        print(f"Error: {exc}")
        return 1

    if args.list:
        print("Available items:")
        for name in sorted(graph.item_names()):
            print(f"  - {name}")
        return 0

    if args.start is not None:
        try:
            labels = shortest_path(graph, args.start, args.goal)
        except ItemNotFoundError as exc:
            print(f"{exc}. Use --list to see available items.")
            return 1
        print(f"shortest path: {render_path(labels)}")
        return 0

    try:
        run_session(graph)
    except KeyboardInterrupt:
        print()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
