"""
Analysis driver: reads type tree dumps and feeds their objects to processors.

    store = AnalysisStore("analysis.db")
    analyzer = Analyzer(store)
    stats = analyzer.analyze_paths(["dumps/"])
    store.close()

Objects whose type has a processor are analyzed inside a per-asset savepoint;
an asset with an unsupported layout is rolled back, logged and skipped. Every
object, analyzed or not, gets a row in ``objects``.
"""

import logging
from contextlib import nullcontext
from pathlib import Path
from typing import Callable, Optional

from .errors import UnsupportedSchemaError
from .processors import create_processors
from .schemas import ShaderRecord, SubProgramRecord
from .store import AnalysisStore
from .timing import AnalyzeTimer
from .typetree import TypeTreeNode, load_dump

logger = logging.getLogger("unity-analyzer")


class ObjectIdProvider:
    """Assigns database ids to (serialized file id, path_id) pairs."""

    def __init__(self, first_id: int = 1):
        self._next_id = first_id
        self._ids: dict[tuple[int, int], int] = {}

    def get_id(self, file_id: int, path_id: int) -> int:
        key = (file_id, path_id)
        object_id = self._ids.get(key)
        if object_id is None:
            object_id = self._next_id
            self._ids[key] = object_id
            self._next_id += 1
        return object_id


class _CountingSink:
    """Forwards records to the store and counts them."""

    def __init__(self, store: AnalysisStore, timer: Optional[AnalyzeTimer]):
        self.store = store
        self.timer = timer
        self.shaders = 0
        self.sub_programs = 0

    def insert_shader(self, record: ShaderRecord):
        self.store.insert_shader(record)
        self.shaders += 1
        if self.timer:
            self.timer.increment_counter("shaders")
            self.timer.increment_counter("db_writes")

    def insert_sub_program(self, record: SubProgramRecord):
        self.store.insert_sub_program(record)
        self.sub_programs += 1
        if self.timer:
            self.timer.increment_counter("sub_programs")
            self.timer.increment_counter("db_writes")


def _tree_name(reader: TypeTreeNode) -> Optional[str]:
    if reader.has_child("m_Name"):
        value = reader["m_Name"].value
        if isinstance(value, str):
            return value
    return None


class Analyzer:
    """Runs processors over the objects of serialized-file dumps.

    An Analyzer owns its processors. Do not share one between threads; create
    one Analyzer per worker instead.
    """

    def __init__(
        self,
        store: AnalysisStore,
        processors: Optional[dict] = None,
        fail_fast: bool = False,
        timer: Optional[AnalyzeTimer] = None,
        dump_glob: str = "*.json",
    ):
        self.store = store
        self.fail_fast = fail_fast
        self.timer = timer
        self.dump_glob = dump_glob
        self.processors = processors if processors is not None else create_processors()
        self.sink = _CountingSink(store, timer)
        self._ids = ObjectIdProvider(store.next_object_id())

        for processor in self.processors.values():
            processor.init(self.sink)

    def _phase(self, name: str, items: int = 0):
        if self.timer:
            return self.timer.phase(name, items)
        return nullcontext()

    def discover(self, paths) -> list[Path]:
        """Expand files and directories into a sorted list of dump files."""
        found: set[Path] = set()
        for path in paths:
            path = Path(path)
            if path.is_dir():
                found.update(p for p in path.rglob(self.dump_glob) if p.is_file())
            elif path.is_file():
                found.add(path)
            else:
                raise FileNotFoundError(f"Input not found: {path}")
        return sorted(found)

    def analyze_paths(
        self,
        paths,
        progress_callback: Optional[Callable[[Path, int, int], None]] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> dict:
        """Analyze every dump under ``paths``.

        Args:
            paths: Dump files and/or directories (searched recursively)
            progress_callback: Optional callback(path, current, total)
            should_stop: Optional callable checked before each asset; returning
                True stops the run after the current asset

        Returns:
            Stats dict: files, objects, processed, skipped, by_type, stopped
        """
        with self._phase("discovery"):
            files = self.discover(paths)

        stats = {
            "files": 0,
            "objects": 0,
            "processed": 0,
            "skipped": 0,
            "by_type": {},
            "stopped": False,
        }

        for i, dump_path in enumerate(files):
            if progress_callback:
                progress_callback(dump_path, i, len(files))

            file_stats = self.analyze_file(dump_path, should_stop=should_stop)

            stats["files"] += 1
            for key in ("objects", "processed", "skipped"):
                stats[key] += file_stats[key]
            for type_name, count in file_stats["by_type"].items():
                stats["by_type"][type_name] = stats["by_type"].get(type_name, 0) + count

            if file_stats["stopped"]:
                stats["stopped"] = True
                break

        if progress_callback:
            progress_callback(None, len(files), len(files))

        return stats

    def analyze_file(
        self,
        dump_path: str | Path,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> dict:
        """Analyze one dump file and commit its rows.

        The file is all-or-nothing: if an exception propagates out, every write
        made for it is rolled back and rows from an earlier run stay in place.
        """
        with self._phase("load"):
            dump = load_dump(dump_path)

        try:
            stats = self._analyze_dump(dump, should_stop)
        except BaseException:
            self.store.rollback()
            # rolled-back file ids may be handed out again
            self._ids = ObjectIdProvider(self.store.next_object_id())
            logger.debug("Rolled back %s", dump["name"])
            raise

        with self._phase("commit"):
            self.store.commit()

        logger.debug(
            "%s: %d objects, %d processed, %d skipped",
            dump["name"],
            stats["objects"],
            stats["processed"],
            stats["skipped"],
        )
        return stats

    def _analyze_dump(self, dump: dict, should_stop: Optional[Callable[[], bool]]) -> dict:
        file_id = self.store.add_serialized_file(dump["name"])
        removed = self.store.remove_file_contents(file_id)
        if removed:
            logger.debug("Replaced %d objects previously stored for %s", removed, dump["name"])

        local_to_db_file_id = {0: file_id}
        for i, external in enumerate(dump["externals"], start=1):
            local_to_db_file_id[i] = self.store.add_serialized_file(external)

        stats = {"objects": 0, "processed": 0, "skipped": 0, "by_type": {}, "stopped": False}

        with self._phase("process", items=len(dump["objects"])):
            for obj in dump["objects"]:
                if should_stop and should_stop():
                    stats["stopped"] = True
                    break
                self._analyze_object(obj, file_id, local_to_db_file_id, stats)

        return stats

    def _analyze_object(
        self, obj: dict, file_id: int, local_to_db_file_id: dict, stats: dict
    ):
        type_name = obj["type"]
        object_id = self._ids.get_id(file_id, obj["path_id"])
        reader = TypeTreeNode(obj["typetree"])

        name = _tree_name(reader)
        streamed_data_size = 0

        processor = self.processors.get(type_name)
        if processor is not None:
            try:
                with self.store.asset_transaction():
                    name, streamed_data_size = processor.process(
                        object_id, local_to_db_file_id, reader
                    )
                stats["processed"] += 1
            except UnsupportedSchemaError as e:
                if self.fail_fast:
                    raise
                logger.warning("Skipping %s %s: %s", type_name, obj["path_id"], e.reason)
                stats["skipped"] += 1
                if self.timer:
                    self.timer.increment_counter("skipped")

        self.store.insert_object(
            object_id,
            obj["path_id"],
            file_id,
            type_name,
            name,
            streamed_data_size,
        )

        stats["objects"] += 1
        stats["by_type"][type_name] = stats["by_type"].get(type_name, 0) + 1
        if self.timer:
            self.timer.increment_counter("total_assets")
            self.timer.increment_counter("db_writes")
