"""Filters command group for entitykit.

Inspect how query strings turn into filter groups and filter expressions.
"""

import json
from pathlib import Path
from typing import Annotated, Any

import typer

from entitykit.cli.formatters import console
from entitykit.cli.formatters.panels import print_error
from entitykit.core.errors import FilterError, SchemaError
from entitykit.entity.schema import load_entity_schema_file
from entitykit.query import (
    AttributeFilter,
    EntityFilter,
    FilterGroup,
    TextOperations,
    add_filter_group_to_criteria,
    compile_filter,
    make_filter_group_for_search_keywords,
    parse_entity_attribute_paths,
    parse_query_string_to_filter_group,
    split_search_terms,
    text_attribute_refs,
)
from entitykit.query.filters import is_complex_filter_value

app = typer.Typer(
    name="filters",
    help="Parse and compile query-string filters.",
    no_args_is_help=True,
)


def _value_references(value: Any) -> list[str]:
    if is_complex_filter_value(value) and value["valType"] == "propRef":
        return [str(value["val"])]
    if isinstance(value, dict):
        return [name for item in value.values() for name in _value_references(item)]
    if isinstance(value, list | tuple):
        return [name for item in value for name in _value_references(item)]
    return []


def referenced_attributes(filter: AttributeFilter | EntityFilter | FilterGroup) -> list[str]:
    """Attribute names a filter reads, in first-seen order."""
    names: list[str] = []
    match filter:
        case AttributeFilter():
            names = [filter.attribute, *_value_references(filter.criteria)]
        case EntityFilter():
            for name, criteria in filter.criteria.items():
                names.extend([name, *_value_references(criteria)])
        case FilterGroup():
            for child in [*filter.and_, *filter.or_, *filter.not_]:
                names.extend(referenced_attributes(child))
    return list(dict.fromkeys(names))


def _fail(message: str) -> typer.Exit:
    print_error(message)
    return typer.Exit(1)


@app.command()
def parse(
    query: Annotated[str, typer.Argument(help="Query string, e.g. 'status=active&age[gte]=18'.")],
    allow_dots: Annotated[
        bool,
        typer.Option("--allow-dots", help="Treat dots in keys as nesting (a.b=1)."),
    ] = False,
) -> None:
    """Print the filter group a query string parses into."""
    try:
        group = parse_query_string_to_filter_group(query, allow_dots=allow_dots)
    except FilterError as e:
        raise _fail(f"Invalid query string: {e}") from e

    console.print_json(json.dumps(group.to_raw(), default=str))


@app.command("compile")
def compile_command(
    query: Annotated[str, typer.Argument(help="Query string to compile.")],
    schema_path: Annotated[
        Path | None,
        typer.Option("--schema", "-s", help="Entity schema YAML; restricts filters to its attributes."),
    ] = None,
    search: Annotated[
        str | None,
        typer.Option("--search", help="Keyword search text."),
    ] = None,
    search_attributes: Annotated[
        list[str] | None,
        typer.Option("--search-attribute", "-a", help="Attribute searched by --search (repeatable)."),
    ] = None,
    allow_dots: Annotated[
        bool,
        typer.Option("--allow-dots", help="Treat dots in keys as nesting (a.b=1)."),
    ] = False,
) -> None:
    """Compile a query string into a readable filter expression.

    Without --schema every attribute the filters mention is accepted.
    """
    try:
        group = parse_query_string_to_filter_group(query, allow_dots=allow_dots)
        if search:
            keywords = make_filter_group_for_search_keywords(
                split_search_terms(search), list(search_attributes or [])
            )
            group = add_filter_group_to_criteria(keywords, group)

        if schema_path is not None:
            attribute_names = list(load_entity_schema_file(schema_path).attributes)
        else:
            attribute_names = referenced_attributes(group)

        expression = compile_filter(group, text_attribute_refs(attribute_names), TextOperations())
    except SchemaError as e:
        raise _fail(f"Invalid entity schema: {e}") from e
    except FilterError as e:
        raise _fail(f"Invalid filter: {e}") from e

    console.print(expression or "(no filter)", markup=False, highlight=False, soft_wrap=True)


@app.command()
def paths(
    attribute_paths: Annotated[
        list[str],
        typer.Argument(help="Dotted attribute paths, e.g. 'name address.city'."),
    ],
) -> None:
    """Print the nested selection tree for attribute paths."""
    console.print_json(json.dumps(parse_entity_attribute_paths(" ".join(attribute_paths))))


__all__ = ["app", "referenced_attributes"]
