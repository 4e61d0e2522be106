from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..core.items import Item

RECORD_FIELDS = ("timestamp", "tag", "value", "quality", "source_timestamp")


def item_records(items: Dict[str, Item], polled_at: Optional[datetime] = None) -> List[Dict]:
    """Flatten one ``Connection.read()`` result into sink records."""
    polled_at = polled_at or datetime.now(timezone.utc)
    return [
        {
            "timestamp": polled_at.isoformat(),
            "tag": tag,
            "value": item.value,
            "quality": item.quality,
            "source_timestamp": item.timestamp.isoformat() if item.timestamp else None,
        }
        for tag, item in items.items()
    ]


def open_sink(path: str, fmt: str = "parquet"):
    if fmt.lower() == "csv":
        from .csv_sink import CSVSink
        return CSVSink(path)
    if fmt.lower() == "parquet":
        from .parquet_sink import ParquetSink
        return ParquetSink(path)
    raise ValueError(f"unknown sink format {fmt!r}")
