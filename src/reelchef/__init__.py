"""reelchef: cooking reels in, structured recipes out."""

__version__ = "0.1.0"
