"""
tfeval - command line entry point.

Subcommands:
    render    Render a Terraform project's resources and outputs
    eval      Evaluate a single expression
    vars      Show or export the resolved variable values of a project
    validate  Check that a project's files parse
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from tfeval import __version__
from tfeval.config import Settings, MAP_ORDERS, OUTPUT_FORMATS
from tfeval.core import (
    ConfigLoader,
    Environment,
    EvaluationError,
    Evaluator,
    TfvarsHandler,
    Value,
    parse_expression,
)
from tfeval.core.hcl_writer import format_config, format_value
from tfeval.security import InputSanitizer, OutputRedactor, SecurityError
from tfeval.utils import setup_logging, validate_project_is_terraform

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tfeval",
        description="Evaluate Terraform conditional, splat and dynamic block expressions.",
    )
    parser.add_argument("--version", action="version", version=f"tfeval {__version__}")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--log-file", action="store_true", help="Also log to a file")
    parser.add_argument("--config-dir", help="Directory holding settings.json")
    parser.add_argument("--map-order", choices=MAP_ORDERS, help="Map iteration order")

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_variable_options(sub):
        sub.add_argument("--var-file", action="append", default=[], help=".tfvars file to load")
        sub.add_argument("--var", action="append", default=[], metavar="NAME=VALUE",
                         help="Set a variable")

    render = subparsers.add_parser("render", help="Render resources and outputs")
    render.add_argument("project", help="Terraform project directory")
    render.add_argument("--format", choices=OUTPUT_FORMATS, help="Output format")
    add_variable_options(render)

    evaluate = subparsers.add_parser("eval", help="Evaluate one expression")
    evaluate.add_argument("expression", help='e.g. \'var.env == "prod" ? "t3.large" : "t2.micro"\'')
    evaluate.add_argument("--project", help="Project whose variable declarations to use")
    evaluate.add_argument("--var-json", action="append", default=[], metavar="NAME=JSON",
                          help="Set a variable from JSON")
    evaluate.add_argument("--format", choices=OUTPUT_FORMATS, help="Output format")
    add_variable_options(evaluate)

    variables = subparsers.add_parser("vars", help="Show resolved variable values")
    variables.add_argument("project", help="Terraform project directory")
    variables.add_argument("--out", help="Write the values to this .tfvars file")
    add_variable_options(variables)

    validate = subparsers.add_parser("validate", help="Check that project files parse")
    validate.add_argument("project", help="Terraform project directory")

    return parser


def collect_overrides(args, loader: Optional[ConfigLoader] = None) -> Dict[str, Any]:
    """
    Gather variable values from --var-file and --var arguments.

    Later sources win. -var values are converted using the declared
    variable type when a project is loaded, otherwise kept as strings.
    """
    overrides: Dict[str, Any] = {}

    for var_file in args.var_file:
        overrides.update(TfvarsHandler.parse_tfvars(InputSanitizer.sanitize_file_path(var_file)))

    declared = {}
    if loader is not None:
        declared = {variable.name: variable.type for variable in loader.parse_variables()}

    for assignment in args.var:
        name, raw = InputSanitizer.sanitize_assignment(assignment)
        overrides[name] = TfvarsHandler.parse_cli_value(raw, declared.get(name, "string"))

    for assignment in getattr(args, "var_json", []):
        name, raw = InputSanitizer.sanitize_assignment(assignment)
        try:
            overrides[name] = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON for '{name}': {e}")

    return overrides


def _dump(data: Any, settings: Settings) -> str:
    return json.dumps(data, indent=settings.get("output.indent", 2))


def cmd_render(args, settings: Settings) -> int:
    project = InputSanitizer.sanitize_path(args.project)
    loader = ConfigLoader(project, map_order=settings.map_order)
    config = loader.render(collect_overrides(args, loader))

    redactor = None
    if settings.get("output.redact_sensitive", True):
        redactor = OutputRedactor(config.sensitive_values())

    if (args.format or settings.output_format) == "hcl":
        print(format_config(config, redactor), end="")
    else:
        data = config.to_dict()
        if redactor is not None:
            # Addresses and indexes are not values and stay as they are
            data["locals"] = redactor.redact_data(data["locals"])
            data["outputs"] = redactor.redact_data(data["outputs"])
            for resource in data["resources"]:
                resource["values"] = redactor.redact_data(resource["values"])
        print(_dump(data, settings))
    return 0


def cmd_eval(args, settings: Settings) -> int:
    text = InputSanitizer.sanitize_expression(args.expression)

    loader = None
    if args.project:
        loader = ConfigLoader(InputSanitizer.sanitize_path(args.project), map_order=settings.map_order)
    overrides = collect_overrides(args, loader)

    if loader is not None:
        variables = loader.resolve_variables(overrides)
    else:
        variables = {name: Value.from_python(value) for name, value in overrides.items()}

    env = Environment({"var": Value.mapping(variables)})
    value = Evaluator(map_order=settings.map_order).evaluate(parse_expression(text), env)

    if (args.format or settings.output_format) == "hcl":
        print(format_value(value))
    else:
        print(_dump(value.to_python(), settings))
    return 0


def cmd_vars(args, settings: Settings) -> int:
    loader = ConfigLoader(InputSanitizer.sanitize_path(args.project), map_order=settings.map_order)
    variables = loader.resolve_variables(collect_overrides(args, loader))
    sensitive = {variable.name for variable in loader.parse_variables() if variable.sensitive}

    if args.out:
        TfvarsHandler.write_tfvars(
            args.out,
            {name: value.to_python() for name, value in variables.items()},
            sensitive_names=sensitive,
        )
        logger.info(f"Wrote {len(variables) - len(sensitive)} values to {args.out}")
        return 0

    for name, value in variables.items():
        shown = "(sensitive value)" if name in sensitive else format_value(value)
        print(f"{name} = {shown}")
    return 0


def cmd_validate(args, settings: Settings) -> int:
    project = InputSanitizer.sanitize_path(args.project)
    if not validate_project_is_terraform(project):
        print(f"Error: No .tf files found in {args.project}", file=sys.stderr)
        return 1

    is_valid, error = ConfigLoader(project).validate_syntax()
    if not is_valid:
        print(f"Error: {error}", file=sys.stderr)
        return 1
    print("Configuration is valid.")
    return 0


COMMANDS = {
    "render": cmd_render,
    "eval": cmd_eval,
    "vars": cmd_vars,
    "validate": cmd_validate,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for tfeval."""
    args = build_parser().parse_args(argv)
    settings = Settings(config_dir=args.config_dir)

    setup_logging(
        log_level=args.log_level or settings.get("logging.level", "WARNING"),
        log_file=args.log_file or settings.get("logging.file", False),
    )
    if args.map_order:
        settings.set("evaluation.map_order", args.map_order)

    logger.debug(f"tfeval {__version__} running '{args.command}'")

    try:
        return COMMANDS[args.command](args, settings)
    except (EvaluationError, SecurityError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
