"""dock-broker: route code submissions to peer-advertised sandbox hosts."""

__version__ = "0.1.0"
