"""Command-line interface for the AID orchestrator."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Dict, List, Optional

from aid_orchestrator import __version__, config
from aid_orchestrator.build.artifacts import ArtifactGenerator
from aid_orchestrator.errors import InvalidStateTransition, NotFoundError, OrchestratorError
from aid_orchestrator.main import build_orchestrator, run
from aid_orchestrator.utils.logger import get_logger

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_NOT_FOUND = 3
EXIT_INVALID_STATE = 4


def _parse_params(pairs: List[str]) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Inference parameters must be key=value, got '{pair}'")
        params[key] = value
    return params


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aid",
        description="AID - package, run and invoke machine-learning solvers in containers"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands"
    )

    # Server command
    server_parser = subparsers.add_parser(
        "server",
        help="Run the HTTP daemon"
    )
    server_parser.add_argument(
        "--host",
        default=config.API_HOST,
        help=f"Host to bind to (default: {config.API_HOST})"
    )
    server_parser.add_argument(
        "--port",
        type=int,
        default=config.API_PORT,
        help=f"Port to bind to (default: {config.API_PORT})"
    )

    build_parser = subparsers.add_parser(
        "build",
        help="Build an image for vendor/package/solver"
    )
    build_parser.add_argument("context", help="vendor/package/solver")
    build_parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Rebuild even if the image already exists"
    )

    create_parser = subparsers.add_parser(
        "create",
        help="Create a container from an image"
    )
    create_parser.add_argument("image", help="Image uid")
    create_parser.add_argument(
        "--port",
        required=True,
        help="Host port bound to the solver's port 8080"
    )

    for verb in ("start", "stop"):
        verb_parser = subparsers.add_parser(verb, help=f"{verb.capitalize()} a container")
        verb_parser.add_argument("container", help="Container uid")

    remove_parser = subparsers.add_parser(
        "remove",
        help="Remove a container, an image or a package"
    )
    remove_parser.add_argument("kind", choices=["container", "image", "package"])
    remove_parser.add_argument("identifier", help="Container/image uid or vendor/package")

    list_parser = subparsers.add_parser(
        "list",
        help="List stored entities"
    )
    list_parser.add_argument("kind", choices=["images", "containers", "solvers", "packages"])

    generate_parser = subparsers.add_parser(
        "generate",
        help="Render Dockerfiles and runners for a package directory"
    )
    generate_parser.add_argument("package_dir", help="Directory containing aid.toml")

    infer_parser = subparsers.add_parser(
        "infer",
        help="Send an inference request to a running container"
    )
    infer_parser.add_argument("container", help="Container uid")
    infer_parser.add_argument("params", nargs="*", help="key=value pairs")

    subparsers.add_parser(
        "version",
        help="Show version information"
    )
    return parser


def _dispatch(args: argparse.Namespace) -> int:
    if args.command == "server":
        run(host=args.host, port=args.port)
        return EXIT_OK

    if args.command == "generate":
        for path in ArtifactGenerator().generate_all(args.package_dir):
            print(path)
        return EXIT_OK

    orchestrator = build_orchestrator()

    if args.command == "build":
        parts = args.context.split("/")
        if len(parts) != 3:
            raise ValueError(f"Build context must be vendor/package/solver, got '{args.context}'")
        result = orchestrator.build(*parts, rebuild=args.rebuild)
        print(f"Built image {result.image.uid} (log {result.log_id})")

    elif args.command == "create":
        container = orchestrator.create(args.image, args.port)
        print(container.uid)

    elif args.command == "start":
        orchestrator.start(args.container)

    elif args.command == "stop":
        orchestrator.stop(args.container)

    elif args.command == "remove":
        orchestrator.remove(args.kind, args.identifier)

    elif args.command == "list":
        if args.kind == "packages":
            rows = orchestrator.list_packages()
        else:
            records = getattr(orchestrator, f"list_{args.kind}")()
            rows = [r.model_dump(mode="json", by_alias=True) for r in records]
        for row in rows:
            print(json.dumps(row))

    elif args.command == "infer":
        result = orchestrator.infer(args.container, _parse_params(args.params))
        print(result if isinstance(result, str) else json.dumps(result, indent=2))

    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the AID CLI.

    Args:
        argv: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code: 0 on success, 3 when an entity cannot be fetched, 4 on a
        rejected state transition or bad input, 1 on any other failure.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    logger = get_logger("aid-orchestrator.cli")

    if args.command is None:
        parser.print_help()
        return EXIT_USAGE

    if args.command == "version":
        print(f"AID Orchestrator version {__version__}")
        return EXIT_OK

    try:
        return _dispatch(args)
    except NotFoundError as e:
        logger.error(f"{e}, Aborted")
        return EXIT_NOT_FOUND
    except (InvalidStateTransition, ValueError) as e:
        logger.error(str(e))
        return EXIT_INVALID_STATE
    except OrchestratorError as e:
        logger.error(str(e))
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
