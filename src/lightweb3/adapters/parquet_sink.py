from __future__ import annotations
import os, pyarrow as pa, pyarrow.parquet as pq
from typing import Iterable

from ..ports.storage import EventSink
from ..domain.models import Log

LOG_SCHEMA = pa.schema([
    ("address", pa.string()),
    ("topics", pa.list_(pa.string())),
    ("data_hex", pa.string()),
    ("block_number", pa.int64()),
    ("block_hash", pa.string()),
    ("tx_hash", pa.string()),
    ("log_index", pa.int64()),
    ("removed", pa.bool_()),
])

def _h32(v: int | None) -> str | None:
    return None if v is None else f"0x{v:064x}"

def logs_to_table(logs: Iterable[Log]) -> pa.Table:
    evs = list(logs)
    return pa.Table.from_arrays(
        arrays=[
            pa.array([e.address for e in evs], pa.string()),
            pa.array([["0x" + t.hex() for t in e.topics] for e in evs], pa.list_(pa.string())),
            pa.array(["0x" + e.data.hex() for e in evs], pa.string()),
            pa.array([e.block_number for e in evs], pa.int64()),
            pa.array([_h32(e.block_hash) for e in evs], pa.string()),
            pa.array([_h32(e.tx_hash) for e in evs], pa.string()),
            pa.array([e.log_index for e in evs], pa.int64()),
            pa.array([e.removed for e in evs], pa.bool_()),
        ],
        schema=LOG_SCHEMA,
    )

class ParquetEventSink(EventSink):
    """One Parquet file per scanned chunk, written to a temp name then renamed."""

    def __init__(self, root_dir: str, prefix: str = "logs") -> None:
        self.root = root_dir
        self.prefix = prefix
        os.makedirs(self.root, exist_ok=True)

    def path_for(self, fb: int, tb: int) -> str:
        return os.path.join(self.root, f"{self.prefix}__chunk_{fb}_{tb}.parquet")

    async def write_chunk(self, from_block: int, to_block: int, logs: Iterable[Log]) -> None:
        path = self.path_for(from_block, to_block)
        tmp  = path + ".tmp"
        pq.write_table(logs_to_table(logs), tmp, compression="snappy", use_dictionary=True)
        os.replace(tmp, path)
