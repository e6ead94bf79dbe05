# vanguard_sync/__main__.py
from .sync_agent import main

if __name__ == "__main__":
    raise SystemExit(main())
