"""
Calendar scheduling engine.

Pure, synchronous scheduling computations over in-memory event collections:
- Recurrence expansion
- Conflict detection (overlap, travel time, priority buffers)
- Business-rule validation
- Greedy priority-anchored rescheduling
"""

__version__ = "0.1.0"
