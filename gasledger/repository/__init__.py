"""Repository layer: SQL for days and sales, executed through the Engine.

Keep functions thin and focused, so services avoid SQL strings.
"""
from __future__ import annotations
