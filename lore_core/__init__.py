"""LocaleLore offline core: action queue, sync engine and offline fact search."""

__version__ = "0.1.0"
