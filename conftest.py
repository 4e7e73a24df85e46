"""Root test configuration making ``chatsync`` importable from a checkout."""

import os
import sys

# The package lives beside this file (flat layout, no ``src/``), so the
# repository root goes on ``sys.path`` when the suite runs without an
# editable install.  ``tests/`` itself is added by pytest, which is how
# ``tests/helpers.py`` is imported as ``helpers``.
ROOT_DIR = os.path.abspath(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)
