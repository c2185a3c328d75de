#!/usr/bin/env python3
"""
Unity Analyzer - Shader metadata extraction CLI

Usage:
    unity-analyzer analyze <dumps...>        Analyze type tree dumps into the database
    unity-analyzer status                    Show database statistics
    unity-analyzer shaders --keyword FOG     List shaders (filter by name/keyword)
    unity-analyzer subprograms <shader_id>   List the sub-programs of one shader
"""

import argparse
import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger("unity-analyzer")


def _resolve_db_path(args) -> Path:
    """--db wins over config.json database_path, then the default data dir."""
    from unity_analyzer.core import get_db_path

    if getattr(args, "db", None):
        return Path(args.db).expanduser().resolve()
    return Path(get_db_path())


def _open_existing_store(args):
    from unity_analyzer.store import AnalysisStore

    db_path = _resolve_db_path(args)
    if not db_path.exists():
        print(f"Database not found: {db_path}")
        print()
        print("Analyze some dumps first:")
        print("  unity-analyzer analyze /path/to/dumps")
        sys.exit(1)
    return AnalysisStore(db_path)


def cmd_analyze(args):
    """Analyze dump files and directories."""
    from unity_analyzer.analyzer import Analyzer
    from unity_analyzer.core import load_config
    from unity_analyzer.errors import AnalyzerError
    from unity_analyzer.store import AnalysisStore
    from unity_analyzer.timing import AnalyzeTimer

    config = load_config()
    fail_fast = args.fail_fast or bool(config.get("fail_fast"))
    use_timing = args.timing or os.environ.get("UNITY_ANALYZER_TIMING") == "1"

    db_path = _resolve_db_path(args)
    print(f"Database: {db_path}")

    store = AnalysisStore(db_path)
    if args.clear:
        store.clear()
        print("Cleared existing analysis data")

    timer = AnalyzeTimer() if use_timing else None
    analyzer = Analyzer(
        store,
        fail_fast=fail_fast,
        timer=timer,
        dump_glob=config.get("dump_glob") or "*.json",
    )

    def progress(path, current, total):
        if path is None:
            sys.stdout.write("\r" + " " * 80 + "\r")
        else:
            sys.stdout.write(f"\r  [{current + 1}/{total}] {path.name}" + " " * 10)
        sys.stdout.flush()

    if timer:
        timer.start()

    try:
        stats = analyzer.analyze_paths(args.paths, progress_callback=progress)
    except FileNotFoundError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    except AnalyzerError as e:
        print()
        print(f"ERROR: {e}")
        sys.exit(1)
    finally:
        store.close()

    if timer:
        timer.stop()

    print(f"Files analyzed:  {stats['files']}")
    print(f"Objects:         {stats['objects']}")
    print(f"Processed:       {stats['processed']}")
    if stats["skipped"]:
        print(f"Skipped:         {stats['skipped']} (unsupported schema, see log)")
    print(f"Shaders:         {analyzer.sink.shaders}")
    print(f"Sub-programs:    {analyzer.sink.sub_programs}")

    if timer:
        print()
        print(timer.report())


def cmd_status(args):
    """Show database statistics."""
    store = _open_existing_store(args)
    try:
        status = store.get_status()
    finally:
        store.close()

    print(f"Database: {store.db_path}")
    print(f"  Serialized files: {status.serialized_files}")
    print(f"  Objects:          {status.total_objects}")
    print(f"  Shaders:          {status.shaders}")
    print(f"  Sub-programs:     {status.sub_programs}")
    print(f"  Schema version:   {status.schema_version}")

    if status.objects_by_type:
        print()
        print("Objects by type:")
        for type_name, count in sorted(
            status.objects_by_type.items(), key=lambda x: -x[1]
        ):
            print(f"  {type_name}: {count}")


def cmd_shaders(args):
    """List shaders."""
    store = _open_existing_store(args)
    try:
        rows = store.list_shaders(name=args.name, keyword=args.keyword, limit=args.limit)
    finally:
        store.close()

    if not rows:
        print("No shaders found.")
        return

    print(f"{'ID':>8}  {'Name':<40} {'Size':>10} {'Subs':>5} {'Progs':>6}")
    print("-" * 74)
    for row in rows:
        print(
            f"{row['id']:>8}  {(row['name'] or '(unnamed)')[:40]:<40} "
            f"{row['decompressed_size']:>10,} {row['sub_shaders']:>5} "
            f"{row['unique_programs']:>6}"
        )
        if args.show_keywords and row["keywords"]:
            print(f"{'':>10}keywords: {row['keywords']}")


def cmd_subprograms(args):
    """List sub-programs of one shader."""
    store = _open_existing_store(args)
    try:
        shader = store.get_shader(args.shader_id)
        rows = store.get_sub_programs(args.shader_id)
    finally:
        store.close()

    if shader is None:
        print(f"Shader not found: {args.shader_id}")
        sys.exit(1)

    print(f"Shader {shader['id']}: {shader['name'] or '(unnamed)'}")
    print()
    print(f"{'Pass':>4} {'Sub':>4} {'Tier':>4} {'Type':<12} {'API':>4}  Keywords")
    print("-" * 60)
    for row in rows:
        print(
            f"{row['pass']:>4} {row['sub_program']:>4} {row['hw_tier']:>4} "
            f"{row['shader_type']:<12} {row['api']:>4}  {row['keywords']}"
        )


def _configure_logging(verbose: bool):
    from unity_analyzer.core import DEBUG

    if verbose or DEBUG:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s %(levelname)s: %(message)s",
            stream=sys.stderr,
        )
    else:
        logging.basicConfig(level=logging.WARNING, stream=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unity-analyzer",
        description="Unity Analyzer - shader metadata extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog="""
Examples:
  unity-analyzer analyze dumps/ --db build/analysis.db
  unity-analyzer analyze sharedassets0.json --fail-fast --timing
  unity-analyzer status
  unity-analyzer shaders --keyword _ALPHATEST_ON --limit 20
  unity-analyzer subprograms 42
""",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command")

    db_parent = argparse.ArgumentParser(add_help=False)
    db_parent.add_argument(
        "--db", help="SQLite database path (default: config or data/analysis.db)"
    )

    analyze_parser = subparsers.add_parser(
        "analyze", parents=[db_parent], help="Analyze type tree dumps"
    )
    analyze_parser.add_argument("paths", nargs="+", help="Dump files or directories")
    analyze_parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Abort on the first asset with an unsupported schema",
    )
    analyze_parser.add_argument(
        "--timing",
        action="store_true",
        help="Print timing report (also set UNITY_ANALYZER_TIMING=1)",
    )
    analyze_parser.add_argument(
        "--clear", action="store_true", help="Delete existing data before analyzing"
    )

    subparsers.add_parser("status", parents=[db_parent], help="Show database statistics")

    shaders_parser = subparsers.add_parser(
        "shaders", parents=[db_parent], help="List analyzed shaders"
    )
    shaders_parser.add_argument("--name", help="Filter by name substring")
    shaders_parser.add_argument("--keyword", help="Filter by keyword")
    shaders_parser.add_argument("--limit", type=int, default=50, help="Max rows (default: 50)")
    shaders_parser.add_argument(
        "--show-keywords", action="store_true", help="Print each shader's keywords"
    )

    sub_parser = subparsers.add_parser(
        "subprograms", parents=[db_parent], help="List sub-programs of a shader"
    )
    sub_parser.add_argument("shader_id", type=int, help="Shader object id")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if args.command == "analyze":
        cmd_analyze(args)
    elif args.command == "status":
        cmd_status(args)
    elif args.command == "shaders":
        cmd_shaders(args)
    elif args.command == "subprograms":
        cmd_subprograms(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
