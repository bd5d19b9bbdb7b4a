import json
import time

from pathlib import Path
from hexbytes import HexBytes
from web3.datastructures import AttributeDict


def now_ts() -> str:
    return time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime())


def log(msg: str):
    print(f"[{now_ts()}] {msg}", flush=True)


def load_json(path):
    with open(path, "r") as f:
        return json.load(f)


def save_json(obj, path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(to_jsonable(obj), f, indent=2, sort_keys=True)


def to_jsonable(obj):
    """Recursively convert Web3 AttributeDict, HexBytes, and other objects into JSON-serializable types."""
    if isinstance(obj, AttributeDict):
        return {k: to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, dict):
        return {k: to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(x) for x in obj]
    if isinstance(obj, HexBytes):
        return obj.to_0x_hex()
    if isinstance(obj, (bytes, bytearray)):
        return "0x" + bytes(obj).hex()
    if hasattr(obj, "to_dict"):
        return to_jsonable(obj.to_dict())
    return obj
