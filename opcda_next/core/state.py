import json
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

STATE_DIR_ENV = "OPCDA_NEXT_STATE_DIR"


def default_state_path() -> Path:
    return Path(os.getenv(STATE_DIR_ENV, Path.home() / ".opcda_next")) / "state.json"


class StateStore:
    """Simple JSON-backed store for server profiles and their saved tags.

    Schema:
      {
        "servers": [
           {"id": "Graybox.Simulator", "server": "Graybox.Simulator", "name": "sim",
            "nodes": ["localhost"], "tags": ["numeric.sin.int64"]}
        ]
      }
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else default_state_path()
        self._lock = threading.RLock()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._write({"servers": []})

    def _read(self) -> Dict:
        with self._lock:
            try:
                with self.path.open("r", encoding="utf-8") as f:
                    return json.load(f)
            except (OSError, ValueError):
                return {"servers": []}

    def _write(self, data: Dict) -> None:
        with self._lock:
            tmp = self.path.with_suffix(".tmp")
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            tmp.replace(self.path)

    def list_servers(self) -> List[Dict]:
        return self._read().get("servers", [])

    def get_server(self, server_id: str) -> Optional[Dict]:
        for s in self.list_servers():
            if s.get("id") == server_id:
                return s
        return None

    def upsert_server(self, server: str, nodes: Optional[Iterable[str]] = None,
                      name: Optional[str] = None) -> Dict:
        with self._lock:
            data = self._read()
            servers = data.setdefault("servers", [])
            # the prog-id doubles as the profile id
            for s in servers:
                if s.get("id") == server:
                    if name is not None:
                        s["name"] = name
                    if nodes is not None:
                        s["nodes"] = list(nodes)
                    self._write(data)
                    return s
            entry = {
                "id": server,
                "server": server,
                "name": name or server,
                "nodes": list(nodes) if nodes is not None else ["localhost"],
                "tags": [],
            }
            servers.append(entry)
            self._write(data)
            return entry

    def delete_server(self, server_id: str) -> None:
        with self._lock:
            data = self._read()
            data["servers"] = [s for s in data.get("servers", []) if s.get("id") != server_id]
            self._write(data)

    def list_tags(self, server_id: str) -> List[str]:
        server = self.get_server(server_id)
        return list(server.get("tags", [])) if server else []

    def add_tag(self, server_id: str, tag: str) -> None:
        with self._lock:
            data = self._read()
            for s in data.get("servers", []):
                if s.get("id") == server_id:
                    tags = s.setdefault("tags", [])
                    if tag not in tags:
                        tags.append(tag)
                    self._write(data)
                    return

    def remove_tag(self, server_id: str, tag: str) -> None:
        with self._lock:
            data = self._read()
            for s in data.get("servers", []):
                if s.get("id") == server_id:
                    s["tags"] = [t for t in s.get("tags", []) if t != tag]
                    break
            self._write(data)
