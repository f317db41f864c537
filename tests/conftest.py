import sys
from pathlib import Path

# Add src to path so the tests run from a plain checkout
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
