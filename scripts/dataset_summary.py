#!/usr/bin/env python3
import argparse
import json

from core.config import get_settings
from datasets.registry import build_registry
from storage.chunked_store import ChunkedStore


def main():
    ap = argparse.ArgumentParser(description="Riepilogo dei dataset closing/opening salvati")
    ap.add_argument("--store", default=None, type=str, help="path dello store (default: BET_DATA_DIR/ODDS_STORE_FILE)")
    ap.add_argument("--clear", action="store_true", help="svuota lo store dopo il riepilogo")
    args = ap.parse_args()

    store = ChunkedStore(args.store or get_settings().store_path)
    registry = build_registry(store)
    print(json.dumps(registry.summary().to_dict(), indent=2))
    if args.clear:
        registry.clear()
        print("[dataset_summary] store svuotato")

if __name__ == "__main__":
    main()
