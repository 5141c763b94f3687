"""Decision surface orchestration core.

Cache-then-network loading of multi-source screens: every source shows
its cached value immediately, revalidates over the network, and lands
independently of its siblings.
"""

__version__ = "1.0.0"
