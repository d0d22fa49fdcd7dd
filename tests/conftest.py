import sys
import os

# Absolute path to project root
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Prepend the project root so the local package overrides site-packages
sys.path.insert(0, PROJECT_ROOT)
