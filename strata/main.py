import argparse
import json
import sys
from typing import Any

import yaml

from strata.core import RunContext, configure, get_logger
from strata.core.exceptions import (
    BadRequestError,
    BaseError,
    ConflictError,
    LoadError,
    NotFoundError,
)
from strata.core.manifest import MANIFEST_FILE
from strata.engine import ApplyResult, Engine
from strata.plan import Plan

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_INVALID = 2
EXIT_CONFLICT = 3

logger = get_logger(__name__)


def load(context: RunContext) -> Engine:
    return Engine.load(
        path=context.path,
        manifest=context.manifest,
        variables=context.variables,
    )


def plan(context: RunContext, destroy: bool, out: str | None) -> int:
    """
    strata plan
    """
    result = load(context).plan(destroy=destroy)
    print(result.render(), end="")
    if out is not None:
        with open(out, "w") as file:
            file.write(result.to_json(indent=2))
        print(f"Saved plan to {out}")
    return EXIT_OK


def apply(
    context: RunContext,
    plan_file: str | None,
    workers: int | None,
    destroy: bool = False,
) -> int:
    """
    strata apply / strata destroy
    """
    engine = load(context)
    saved = None
    if plan_file is not None:
        try:
            with open(plan_file, "r") as file:
                saved = Plan.from_json(file.read())
        except (OSError, ValueError) as e:
            raise LoadError(f"Cannot read plan {plan_file}: {e}")
    try:
        if destroy:
            result = engine.destroy(workers=workers)
        else:
            result = engine.apply(plan=saved, workers=workers)
    except KeyboardInterrupt:
        engine.cancel()
        raise
    print_result(result)
    return result.exit_code


def refresh(context: RunContext) -> int:
    """
    strata refresh
    """
    snapshot = load(context).refresh()
    print(
        f"Refreshed {len(snapshot.resources)} resources "
        f"(state version {snapshot.version})"
    )
    return EXIT_OK


def show(context: RunContext) -> int:
    """
    strata show
    """
    snapshot = load(context).show()
    print(snapshot.to_json(indent=2))
    return EXIT_OK


def output(context: RunContext, name: str | None) -> int:
    """
    strata output
    """
    value = load(context).outputs(name=name)
    print(json.dumps(value, indent=2, sort_keys=True, default=str))
    return EXIT_OK


def graph(context: RunContext) -> int:
    """
    strata graph
    """
    print(load(context).graph().to_dot(), end="")
    return EXIT_OK


def force_unlock(context: RunContext) -> int:
    """
    strata force-unlock
    """
    snapshot = load(context).force_unlock()
    print(f"State unlocked (version {snapshot.version})")
    return EXIT_OK


def print_result(result: ApplyResult) -> None:
    if result.plan.empty and not result.results:
        print("No changes. Infrastructure matches the configuration.")
        return
    print(result.render(), end="")


def parse_variables(values: list[str] | None) -> dict[str, Any]:
    variables: dict[str, Any] = {}
    for value in values or []:
        if "=" not in value:
            raise LoadError(f"--var expects name=value, got {value}")
        name, raw = value.split("=", 1)
        try:
            variables[name.strip()] = yaml.safe_load(raw) if raw else ""
        except yaml.YAMLError:
            variables[name.strip()] = raw
    return variables


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="strata",
        description="Dependency ordered infrastructure reconciliation",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    plan_parser = subparsers.add_parser(
        "plan", help="Show the changes an apply would make"
    )
    apply_parser = subparsers.add_parser(
        "apply", help="Apply the manifest or a saved plan"
    )
    destroy_parser = subparsers.add_parser(
        "destroy", help="Delete every managed resource"
    )
    refresh_parser = subparsers.add_parser(
        "refresh", help="Update state from the cloud"
    )
    show_parser = subparsers.add_parser("show", help="Print the state")
    output_parser = subparsers.add_parser(
        "output", help="Print manifest outputs as JSON"
    )
    graph_parser = subparsers.add_parser(
        "graph", help="Print the resource graph in DOT format"
    )
    unlock_parser = subparsers.add_parser(
        "force-unlock", help="Release a stale state lock"
    )
    common_arguments = [
        ("--path", str, ".", "Project directory", None),
        ("--manifest", str, MANIFEST_FILE, "Manifest filename", None),
        ("--var", str, None, "Variable override name=value", "append"),
        ("--log-level", str, "WARNING", "Log level", None),
    ]
    worker_arguments = [
        ("--workers", int, None, "Operations run in parallel", None),
    ]
    for subparser in (
        plan_parser,
        apply_parser,
        destroy_parser,
        refresh_parser,
        show_parser,
        output_parser,
        graph_parser,
        unlock_parser,
    ):
        for arg in common_arguments:
            if arg[4] == "append":
                subparser.add_argument(
                    arg[0], type=arg[1], default=arg[2], help=arg[3],
                    action="append",
                )
            else:
                subparser.add_argument(
                    arg[0], type=arg[1], default=arg[2], help=arg[3]
                )
    for subparser in (apply_parser, destroy_parser):
        for arg in worker_arguments:
            subparser.add_argument(
                arg[0], type=arg[1], default=arg[2], help=arg[3]
            )
    plan_parser.add_argument(
        "--destroy", action="store_true", help="Plan deletion of everything"
    )
    plan_parser.add_argument(
        "--out", type=str, default=None, help="Save the plan as JSON"
    )
    apply_parser.add_argument(
        "plan_file", type=str, nargs="?", default=None, help="Saved plan"
    )
    output_parser.add_argument(
        "name", type=str, nargs="?", default=None, help="Output name"
    )

    args = parser.parse_args(argv)
    configure(args.log_level)
    try:
        context = RunContext(
            path=args.path,
            manifest=args.manifest,
            variables=parse_variables(args.var),
        )
        if args.command == "plan":
            return plan(context, destroy=args.destroy, out=args.out)
        elif args.command == "apply":
            return apply(context, args.plan_file, args.workers)
        elif args.command == "destroy":
            return apply(context, None, args.workers, destroy=True)
        elif args.command == "refresh":
            return refresh(context)
        elif args.command == "show":
            return show(context)
        elif args.command == "output":
            return output(context, args.name)
        elif args.command == "graph":
            return graph(context)
        elif args.command == "force-unlock":
            return force_unlock(context)
        parser.print_help()
        return EXIT_INVALID
    except (BadRequestError, LoadError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID
    except ConflictError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFLICT
    except NotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_PARTIAL
    except BaseError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_PARTIAL
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return EXIT_PARTIAL


if __name__ == "__main__":
    sys.exit(main())
