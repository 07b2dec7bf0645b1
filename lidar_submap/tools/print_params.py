#!/usr/bin/env python3
"""
Load a submap mapper config and print the values it resolves to.

Usage:
  lidar_submap_params                       # packaged default config
  lidar_submap_params <config_path>
  lidar_submap_params <config_path> --section map_builder --json

Accepts the same layouts as load_mapper_params (a `mapper:` section, a ROS 2
`/**: ros__parameters:` wrapper, or bare keys). Validation errors are printed
and reported through the exit code.
"""

import argparse
import json
import logging
import sys

from pydantic import ValidationError

from lidar_submap.common.config import default_config_path, load_mapper_params

_logger = logging.getLogger(__name__)

_SECTIONS = ("map_builder", "dense_map_builder", "scan_matcher", "place_recognition", "submaps")


def _print_section(name: str, values: dict, indent: int = 0) -> None:
    pad = "  " * indent
    print(f"{pad}{name}:")
    for key, value in values.items():
        if isinstance(value, dict):
            _print_section(key, value, indent + 1)
        else:
            print(f"{pad}  {key}: {value}")


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Print resolved submap mapper parameters")
    ap.add_argument("config_path", nargs="?", default=None, help="Mapper config YAML (default: packaged config)")
    ap.add_argument("--section", choices=_SECTIONS, default=None, help="Print only this section")
    ap.add_argument("--json", action="store_true", help="Emit JSON instead of indented text")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    path = args.config_path or default_config_path()
    try:
        params = load_mapper_params(path)
    except FileNotFoundError as exc:
        _logger.error("%s", exc)
        return 2
    except ValidationError as exc:
        _logger.error("Invalid mapper config %s:\n%s", path, exc)
        return 1

    data = params.model_dump()
    if args.section is not None:
        data = {args.section: data[args.section]}

    if args.json:
        print(json.dumps(data, indent=2))
    else:
        print(f"# {path}")
        for name, values in data.items():
            _print_section(name, values)
    return 0


if __name__ == "__main__":
    sys.exit(main())
