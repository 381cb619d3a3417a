import os
import sys
import subprocess
import webbrowser
import time
from pathlib import Path


def find_python() -> str:
    """Prefers the project's .venv interpreter, where studycards is installed."""
    bin_dir = "Scripts" if sys.platform == "win32" else "bin"
    venv_python = Path(".venv") / bin_dir / ("python.exe" if sys.platform == "win32" else "python")
    return str(venv_python) if venv_python.exists() else sys.executable


def main():
    port = os.getenv("PORT", "8000")
    cmd = [find_python(), "-m", "uvicorn", "studycards.main:app", "--port", port, "--host", "127.0.0.1"]
    print(f"Starting Study Cards API: {' '.join(cmd)}")

    process = None
    try:
        process = subprocess.Popen(cmd)
        time.sleep(2)
        webbrowser.open(f"http://127.0.0.1:{port}/docs")
        print("Press Ctrl+C to stop.")
        process.wait()
    except KeyboardInterrupt:
        print("\nStopping...")
        process.terminate()
    except OSError as e:
        print(f"Could not start uvicorn: {e}")
        if process is not None:
            process.terminate()


if __name__ == "__main__":
    main()
