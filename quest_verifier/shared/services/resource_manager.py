import json
from pathlib import Path
from typing import Any, Dict, List


class ResourceManager:
    """Loads the contract ABIs shipped with the package"""

    def __init__(self, resources_root: Path = None):
        if resources_root is None:
            resources_root = (
                Path(__file__).resolve().parent.parent.parent / "resources"
            )
        self._abi_dir = (Path(resources_root) / "abi").resolve(strict=False)
        self._abis: Dict[str, List[Dict[str, Any]]] = {}

    def abi_path(self, name: str) -> Path:
        """Path of a packaged ABI, refusing names that escape the ABI dir"""
        path = (self._abi_dir / f"{name}.json").resolve(strict=False)
        try:
            path.relative_to(self._abi_dir)
        except ValueError:
            raise ValueError(f"Invalid ABI name: {name}")
        return path

    def load_abi(self, name: str) -> List[Dict[str, Any]]:
        """Load (and memoize) a packaged ABI"""
        if name not in self._abis:
            path = self.abi_path(name)
            if not path.exists():
                raise FileNotFoundError(f"ABI file not found: {path}")
            with open(path) as f:
                self._abis[name] = json.load(f)
        return self._abis[name]

    def find_event(self, abi_name: str, event_name: str) -> Dict[str, Any]:
        """Return the ABI entry of an event, or raise ValueError"""
        for item in self.load_abi(abi_name):
            if item.get("type") == "event" and item.get("name") == event_name:
                return item
        raise ValueError(f"Event {event_name} not found in ABI {abi_name}")


# Global instance
resource_manager = ResourceManager()
