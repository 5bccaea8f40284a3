"""study-planner - local-first study plan storage with a remote mirror."""

__version__ = "0.1.0"
