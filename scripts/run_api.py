#!/usr/bin/env python
"""
Run the B2B pricing API with uvicorn.

Usage:
    python scripts/run_api.py [port]
"""
import os
import subprocess
import sys
from pathlib import Path


def main():
    project_root = Path(__file__).parent.parent
    port = sys.argv[1] if len(sys.argv) > 1 else "8000"

    # Make the src layout importable without an editable install
    env = os.environ.copy()
    src_path = str(project_root / "src")
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [src_path, env.get("PYTHONPATH")]))

    cmd = [
        sys.executable, "-m", "uvicorn",
        "b2b_pricing.api.main:app",
        "--host", "0.0.0.0",
        "--port", port,
        "--reload",
    ]
    print(f"Starting B2B Pricing API on port {port}...")
    try:
        subprocess.run(cmd, env=env, cwd=str(project_root))
    except KeyboardInterrupt:
        print("\nAPI stopped.")


if __name__ == "__main__":
    main()
